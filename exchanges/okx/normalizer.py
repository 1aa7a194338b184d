"""
OKX Order Book Normalizer

OKX Message Format (books channel):
    {
      "arg": {"channel": "books", "instId": "BTC-USDT"},
      "action": "snapshot",            // first push, then "update"
      "data": [{
        "asks": [["41006.8", "0.60038921", "0", "1"]],   // price, size, deprecated, order count
        "bids": [["41006.3", "0.30178218", "0", "2"]],
        "ts": "1629966436396",
        "checksum": -1200119424
      }]
    }

Ignored: subscription acks ({"event": "subscribe", ...}), error events, and the
plain-text "pong" heartbeat reply.
"""

from typing import Optional

from core.normalizer import BookNormalizer, parse_levels
from core.schemas import BookDelta, Venue
from core.utils.time import to_utc_datetime


# Channels whose pushes are full order book images on every message
FULL_IMAGE_CHANNELS = {"books5", "bbo-tbt"}
BOOK_CHANNELS = {"books", "books-l2-tbt", "books50-l2-tbt"} | FULL_IMAGE_CHANNELS


class OKXNormalizer(BookNormalizer):
    venue = Venue.OKX

    def extract(self, message: dict) -> Optional[BookDelta]:
        channel = (message.get("arg") or {}).get("channel")
        if channel not in BOOK_CHANNELS or "event" in message:
            return None

        data = message.get("data")
        if not isinstance(data, list) or not data:
            return None

        book = data[0]
        ts = book.get("ts")

        return BookDelta(
            bids=parse_levels(book.get("bids") or []),
            asks=parse_levels(book.get("asks") or []),
            is_snapshot=channel in FULL_IMAGE_CHANNELS or message.get("action") == "snapshot",
            timestamp=to_utc_datetime(ts) if ts else None,
        )
