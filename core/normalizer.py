"""
Message Normalizer Contract

Each venue ships one BookNormalizer subclass that recognizes its own envelope
(channel / topic / method discriminators) and extracts order book changes into a
BookDelta. The variant is chosen once, when a subscription starts, so no message
ever goes through venue sniffing.

Contract:
    normalize(message) -> BookDelta | None

    - None for anything that is not an order book message (trades, pongs, acks)
    - None for malformed payloads (bad numbers, missing fields); never raises
"""

import json
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Union

from core.logging import get_logger
from core.schemas import BookDelta, DeltaEntry, Venue


logger = get_logger(__name__)

# Errors a malformed frame can raise while being picked apart
PARSE_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError, InvalidOperation)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a venue numeric field (string or JSON number) to a finite Decimal.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, float):
        value = repr(value)
    number = Decimal(value)
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def parse_levels(rows: Iterable[Any]) -> List[DeltaEntry]:
    """
    Parse [price, size, ...] rows. Extra trailing fields are ignored.

    Example:
        >>> parse_levels([["100.5", "2", "0", "1"]])
        [(Decimal('100.5'), Decimal('2'))]
    """
    return [(to_decimal(row[0]), to_decimal(row[1])) for row in rows]


def decode_frame(frame: Union[str, bytes]) -> Optional[Any]:
    """
    Decode a raw transport frame into a JSON value.

    Returns None for non-JSON frames (plain-text "pong" replies, garbage).
    """
    if isinstance(frame, bytes):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        return json.loads(frame)
    except (json.JSONDecodeError, TypeError):
        return None


class BookNormalizer(ABC):
    """
    Base class for per-venue order book normalizers.

    Subclasses implement extract(); normalize() guarantees the never-raise contract.
    """

    venue: Venue

    def normalize(self, message: Any) -> Optional[BookDelta]:
        """
        Translate a decoded venue message into a BookDelta.

        Args:
            message: Decoded JSON value received from the venue

        Returns:
            BookDelta for order book messages, None for anything else or on parse failure
        """
        if not isinstance(message, dict):
            return None
        try:
            return self.extract(message)
        except PARSE_ERRORS as e:
            logger.debug(f"Dropping malformed {self.venue.value} frame: {e}")
            return None

    @abstractmethod
    def extract(self, message: dict) -> Optional[BookDelta]:
        """
        Venue-specific extraction. May raise any of PARSE_ERRORS on bad input.
        """
        raise NotImplementedError
