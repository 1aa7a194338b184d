#!/usr/bin/env python3
"""
Watch a live order book straight from a venue, without the API server.

Prints connection status changes and the top of book on every published snapshot.

Usage examples:
  python scripts/book_watch.py --venue okx --instrument BTC-USDT
  python scripts/book_watch.py --venue deribit --instrument BTC-PERPETUAL --levels 5 --duration 60
"""

import asyncio
import argparse
import sys
from typing import Optional

from core.engine import OrderBookEngine
from core.logging import set_log_level
from core.schemas import BookUpdate
from core.venue_manager import venue_manager


def render(update: BookUpdate, levels: int) -> str:
    header = f"[{update.venue.value} {update.instrument_id}] status={update.status.value}"
    if update.attempt:
        header += f" attempt={update.attempt}"

    snapshot = update.snapshot
    if snapshot is None:
        return header

    lines = [f"{header} spread={snapshot.spread} mid={snapshot.mid_price}"]
    for ask in reversed(snapshot.asks[:levels]):
        lines.append(f"    ask {ask.price:>14} {ask.size:>14} {ask.total:>14}")
    lines.append("    " + "-" * 46)
    for bid in snapshot.bids[:levels]:
        lines.append(f"    bid {bid.price:>14} {bid.size:>14} {bid.total:>14}")
    return "\n".join(lines)


async def watch(venue: str, instrument: str, levels: int, duration: Optional[int]) -> None:
    engine = OrderBookEngine(
        venue_manager.get_venue(venue),
        instrument,
        listener=lambda update: print(render(update, levels)),
    )
    engine.start()
    try:
        if duration:
            await asyncio.sleep(duration)
            print(f"[Info] Duration reached; {engine.publish_count} snapshots published.")
        else:
            await asyncio.Event().wait()
    finally:
        await engine.stop()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Print a live order book from OKX, Bybit or Deribit")
    parser.add_argument("--venue", required=True, help="Venue name (okx, bybit, deribit)")
    parser.add_argument("--instrument", required=True, help="Venue-native instrument id (e.g., BTC-USDT)")
    parser.add_argument("--levels", type=int, default=5, help="Levels printed per side (default: 5)")
    parser.add_argument("--duration", type=int, default=0, help="Seconds to run (0 = run indefinitely)")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (e.g., DEBUG for state transitions)")
    args = parser.parse_args()

    if not venue_manager.has_venue(args.venue):
        parser.error(f"unknown venue '{args.venue}' (choose from {', '.join(venue_manager.list_venues())})")

    if args.log_level:
        set_log_level(args.log_level)

    duration = args.duration if args.duration and args.duration > 0 else None
    await watch(args.venue, args.instrument, args.levels, duration)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n[Info] Interrupted. Bye.")
        sys.exit(0)
