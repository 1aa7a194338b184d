"""
Bybit Order Book Normalizer

Bybit WebSocket Format:
    Topic: orderbook.{depth}.{symbol}
    Example: orderbook.50.BTCUSDT

    {
      "topic": "orderbook.50.BTCUSDT",
      "type": "snapshot",              // or "delta"
      "ts": 1672304484978,
      "data": {
        "s": "BTCUSDT",
        "b": [["16493.50", "0.006"]],  // price, size ("0" = remove)
        "a": [["16611.00", "0.029"]],
        "u": 18521288,
        "seq": 7961638724
      }
    }

Notes:
    - A "snapshot" resets the local book
    - A delta with update id u == 1 means Bybit restarted the stream; it is a snapshot too
    - Subscription acks and pong replies carry "op" instead of "topic" and are ignored
"""

from typing import Optional

from core.normalizer import BookNormalizer, parse_levels
from core.schemas import BookDelta, Venue
from core.utils.time import to_utc_datetime


class BybitNormalizer(BookNormalizer):
    venue = Venue.BYBIT

    def extract(self, message: dict) -> Optional[BookDelta]:
        topic = message.get("topic")
        if not isinstance(topic, str) or not topic.startswith("orderbook."):
            return None

        data = message.get("data")
        if not isinstance(data, dict):
            return None

        ts = message.get("ts")

        return BookDelta(
            bids=parse_levels(data.get("b") or []),
            asks=parse_levels(data.get("a") or []),
            is_snapshot=message.get("type") == "snapshot" or data.get("u") == 1,
            timestamp=to_utc_datetime(ts) if ts else None,
        )
