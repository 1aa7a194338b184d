"""
Update Scheduler

Throttles how often the merged ladders are published to consumers.

Rules:
    - At most one publish per throttle window T
    - A change arriving after the window elapsed (and with nothing pending) publishes immediately
    - A change arriving inside the window schedules exactly one deferred publish at the
      remaining time; further changes before it fires are coalesced into it
    - The deferred publish reads the ladders when it fires ("latest state wins")
    - After reset() (fresh connection) the next publish is immediate

The scheduler does not hold any book state: publish() is expected to snapshot
whatever the ladders look like at call time.
"""

import asyncio
import time
from typing import Callable, Optional

from core.config import settings
from core.logging import get_logger


TimerFactory = Callable[[float, Callable[[], None]], asyncio.TimerHandle]


class UpdateScheduler:
    """
    Trailing-edge throttle with a single pending timer.

    Attributes:
        window: Throttle window in seconds

    Example:
        >>> scheduler = UpdateScheduler(publish=lambda: print("publish"), window=0.1)
        >>> scheduler.on_ladder_changed()   # publishes now
        >>> scheduler.on_ladder_changed()   # schedules one publish ~0.1s later
        >>> scheduler.on_ladder_changed()   # coalesced into the pending publish
    """

    def __init__(
        self,
        publish: Callable[[], None],
        window: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
        call_later: Optional[TimerFactory] = None
    ):
        """
        Args:
            publish: Callback producing and delivering a snapshot
            window: Throttle window in seconds (default: settings.update_throttle)
            clock: Monotonic clock in seconds (default: time.monotonic)
            call_later: Timer factory (default: the running loop's call_later)
        """
        self._publish = publish
        self.window = window if window is not None else settings.update_throttle
        self._clock = clock or time.monotonic
        self._call_later = call_later
        self._last_publish: Optional[float] = None
        self._pending: Optional[asyncio.TimerHandle] = None
        self.logger = get_logger(__name__)

    @property
    def pending(self) -> bool:
        """True while a deferred publish is scheduled."""
        return self._pending is not None

    @property
    def last_publish(self) -> Optional[float]:
        return self._last_publish

    def on_ladder_changed(self) -> None:
        """Notify the scheduler that the ladders changed."""
        if self._pending is not None:
            return

        now = self._clock()
        if self._last_publish is None or now - self._last_publish >= self.window:
            self._flush()
            return

        delay = self.window - (now - self._last_publish)
        self.logger.debug(f"Deferring publish by {delay * 1000:.1f}ms")
        call_later = self._call_later or asyncio.get_running_loop().call_later
        self._pending = call_later(delay, self._on_timer)

    def reset(self) -> None:
        """Forget the last publish time so the next change publishes immediately."""
        self.cancel()
        self._last_publish = None

    def cancel(self) -> None:
        """Drop the pending publish, if any."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_timer(self) -> None:
        self._pending = None
        self._flush()

    def _flush(self) -> None:
        self._last_publish = self._clock()
        self._publish()
