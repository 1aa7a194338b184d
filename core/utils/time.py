"""
Time Utilities

Venues stamp their frames differently:
- OKX / Bybit / Deribit: milliseconds since epoch (e.g., 1704110400000),
  sometimes as strings (OKX "ts": "1704110400000")
- We need: Python datetime objects in UTC

The utilities in this module normalize those formats into timezone-aware UTC datetimes.
"""

from datetime import datetime, timezone
from typing import Union


def to_utc_datetime(timestamp: Union[int, float, str]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds (numeric string accepted)

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime("1704110400")
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if isinstance(timestamp, str):
        timestamp = float(timestamp)

    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # Current time in seconds: ~1.7 billion, in milliseconds: ~1.7 trillion
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def current_utc_timestamp(milliseconds: bool = False) -> int:
    """
    Current Unix time as an int, in seconds or milliseconds.

    Used for JSON-RPC request ids, which only need to be unique per connection.

    Example:
        >>> current_utc_timestamp(milliseconds=True)
        1704110400123
    """
    now = datetime.now(timezone.utc).timestamp()
    return int(now * 1000) if milliseconds else int(now)


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)
