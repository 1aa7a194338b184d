"""
Reconnect Retry Schedule

Exponential backoff bookkeeping for the connection supervisor.

Delay sequence with initial_delay=1s, max_delay=10s, max_attempts=5:
    attempt 1 -> 1s
    attempt 2 -> 2s
    attempt 3 -> 4s
    attempt 4 -> 8s
    attempt 5 -> 10s (capped)
    attempt 6 -> exhausted, status becomes "error"

The counter only resets on a successful connection.
"""

from typing import Optional

from core.config import settings


class RetrySchedule:
    """
    Attributes:
        attempt: Number of consecutive abnormal closures (0 while healthy)
        next_delay: Delay that the next reconnect will wait, in seconds
    """

    def __init__(
        self,
        initial_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        max_attempts: Optional[int] = None
    ):
        self.initial_delay = initial_delay if initial_delay is not None else settings.initial_retry_delay
        self.max_delay = max_delay if max_delay is not None else settings.max_retry_delay
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_reconnect_attempts
        self.attempt = 0
        self.next_delay = self.initial_delay

    def __repr__(self) -> str:
        return f"RetrySchedule(attempt={self.attempt}, next_delay={self.next_delay})"

    @property
    def exhausted(self) -> bool:
        return self.attempt > self.max_attempts

    def reset(self) -> None:
        """Called on every successful connection."""
        self.attempt = 0
        self.next_delay = self.initial_delay

    def advance(self) -> Optional[float]:
        """
        Record an abnormal closure.

        Returns:
            The delay to wait before reconnecting, or None when retries are exhausted
        """
        self.attempt += 1
        if self.exhausted:
            return None

        delay = self.next_delay
        self.next_delay = min(self.next_delay * 2, self.max_delay)
        return delay
