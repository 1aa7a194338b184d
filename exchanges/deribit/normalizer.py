"""
Deribit Order Book Normalizer

Deribit speaks JSON-RPC 2.0; market data arrives as "subscription" notifications.

Grouped channel (book.{instrument}.{group}.{depth}.{interval}), a full top-N image:
    {
      "jsonrpc": "2.0",
      "method": "subscription",
      "params": {
        "channel": "book.BTC-PERPETUAL.none.10.100ms",
        "data": {
          "timestamp": 1554375447971,
          "instrument_name": "BTC-PERPETUAL",
          "bids": [[3955.75, 30.0], [3940.75, 102020.0]],
          "asks": [[3996, 55.0]]
        }
      }
    }

Raw channel (book.{instrument}.{interval}), incremental:
    "data": {
      "type": "change",                  // "snapshot" on the first notification
      "bids": [["change", 3955.75, 20.0], ["delete", 3940.75, 0.0]],
      "asks": [["new", 3996, 55.0]]
    }

Heartbeat replies ({"id": ..., "result": ...}) and subscription acks are ignored.
"""

from decimal import Decimal
from typing import Any, Iterable, List, Optional

from core.normalizer import BookNormalizer, to_decimal
from core.schemas import BookDelta, DeltaEntry, Venue
from core.utils.time import to_utc_datetime


LEVEL_ACTIONS = {"new", "change", "delete"}


def parse_deribit_levels(rows: Iterable[Any]) -> List[DeltaEntry]:
    """
    Parse both [price, amount] and [action, price, amount] rows.

    Example:
        >>> parse_deribit_levels([["delete", 3940.75, 0.0], [3955.75, 30.0]])
        [(Decimal('3940.75'), Decimal('0')), (Decimal('3955.75'), Decimal('30.0'))]
    """
    levels = []
    for row in rows:
        if isinstance(row[0], str) and row[0] in LEVEL_ACTIONS:
            action, price, amount = row[0], row[1], row[2]
            size = Decimal(0) if action == "delete" else to_decimal(amount)
            levels.append((to_decimal(price), size))
        else:
            levels.append((to_decimal(row[0]), to_decimal(row[1])))
    return levels


class DeribitNormalizer(BookNormalizer):
    venue = Venue.DERIBIT

    def extract(self, message: dict) -> Optional[BookDelta]:
        if message.get("method") != "subscription":
            return None

        params = message.get("params") or {}
        channel = params.get("channel")
        if not isinstance(channel, str) or not channel.startswith("book."):
            return None

        data = params.get("data")
        if not isinstance(data, dict):
            return None

        ts = data.get("timestamp")

        return BookDelta(
            bids=parse_deribit_levels(data.get("bids") or []),
            asks=parse_deribit_levels(data.get("asks") or []),
            # grouped notifications carry no "type" and are always complete images
            is_snapshot=data.get("type", "snapshot") == "snapshot",
            timestamp=to_utc_datetime(ts) if ts else None,
        )
