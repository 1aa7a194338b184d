"""
Ladder Merger

Maintains the authoritative fixed-depth bid and ask ladders of one subscription.

Merge rules (applied per side):
    1. Upsert every (price, size) change into a price-keyed map of the current levels
    2. Drop prices whose size is <= 0 (size "0" means "remove this level")
    3. Sort: bids descending, asks ascending
    4. Truncate to the configured depth, dropping the worst-priced levels
    5. Recompute cumulative totals in sorted order

Levels pushed out by truncation are forgotten; they come back only when the venue
sends them again.
"""

from decimal import Decimal
from operator import itemgetter
from typing import Iterable, Optional, Sequence

from core.config import settings
from core.schemas import BookDelta, BookSnapshot, DeltaEntry, Ladder, PriceLevel, Side, Venue
from core.utils.time import current_utc_datetime


def build_ladder(pairs: Iterable[DeltaEntry]) -> Ladder:
    """
    Build a ladder from already sorted (price, size) pairs, filling in running totals.
    """
    total = Decimal(0)
    levels = []
    for price, size in pairs:
        total += size
        levels.append(PriceLevel(price=price, size=size, total=total))
    return tuple(levels)


def apply_deltas(ladder: Ladder, deltas: Sequence[DeltaEntry], side: Side, depth: int) -> Ladder:
    """
    Merge deltas into a ladder and return the new ladder.

    The input ladder is never modified. An empty delta list returns the input ladder unchanged.

    Args:
        ladder: Current ladder for this side
        deltas: (price, size) changes; size <= 0 removes the level
        side: Side.BID sorts descending, Side.ASK ascending
        depth: Maximum number of levels kept

    Returns:
        Ladder: Sorted, truncated ladder with recomputed totals

    Example:
        >>> bids = apply_deltas((), [(Decimal("100"), Decimal("2")), (Decimal("99"), Decimal("3"))], Side.BID, 15)
        >>> [(l.price, l.size, l.total) for l in bids]
        [(Decimal('100'), Decimal('2'), Decimal('2')), (Decimal('99'), Decimal('3'), Decimal('5'))]
    """
    if not deltas:
        return ladder

    sizes = {level.price: level.size for level in ladder}
    for price, size in deltas:
        if size <= 0:
            sizes.pop(price, None)
        else:
            sizes[price] = size

    ordered = sorted(sizes.items(), key=itemgetter(0), reverse=(side is Side.BID))
    return build_ladder(ordered[:depth])


class LadderMerger:
    """
    Owner of both ladders for one subscription.

    No other component mutates the ladders; consumers only ever see them through
    snapshots produced by snapshot().

    Attributes:
        depth: Maximum number of levels per side
        bids: Current bid ladder (best first)
        asks: Current ask ladder (best first)
    """

    def __init__(self, depth: Optional[int] = None):
        self.depth = depth if depth is not None else settings.book_depth
        if self.depth < 1:
            raise ValueError(f"Ladder depth must be at least 1, got {self.depth}")
        self.bids: Ladder = ()
        self.asks: Ladder = ()

    def apply(self, delta: BookDelta) -> bool:
        """
        Merge a normalized delta into both ladders.

        A snapshot delta rebuilds the ladders from its own contents.

        Returns:
            bool: True if either ladder changed
        """
        base_bids, base_asks = ((), ()) if delta.is_snapshot else (self.bids, self.asks)

        bids = apply_deltas(base_bids, delta.bids, Side.BID, self.depth)
        asks = apply_deltas(base_asks, delta.asks, Side.ASK, self.depth)

        changed = bids != self.bids or asks != self.asks
        self.bids, self.asks = bids, asks
        return changed

    def clear(self) -> None:
        self.bids = ()
        self.asks = ()

    def snapshot(self, venue: Venue, instrument_id: str) -> BookSnapshot:
        """
        Freeze the current ladders into a BookSnapshot.

        Spread and mid price are derived here, from the ladders as they are now.
        """
        spread = None
        mid_price = None
        if self.bids and self.asks:
            best_bid = self.bids[0].price
            best_ask = self.asks[0].price
            spread = best_ask - best_bid
            mid_price = (best_bid + best_ask) / 2

        return BookSnapshot(
            venue=venue,
            instrument_id=instrument_id,
            bids=self.bids,
            asks=self.asks,
            spread=spread,
            mid_price=mid_price,
            timestamp=current_utc_datetime(),
        )
