"""
Order Impact Calculator

Walks a hypothetical order through a published BookSnapshot and reports how much
would fill, at what average price, and how far that price is from the top of book.
Only snapshots are read; the live ladders are never touched.

Market orders:
    - consume the opposite side level by level until the quantity is filled
    - slippage = distance of the average fill from the best price, in percent
    - market_impact = 100 when the book cannot fill the order, slippage / 10 otherwise

Limit orders:
    - marketable when a buy is priced at or above the best ask (sell: at or below the best bid)
    - marketable orders consume levels up to the limit price
    - slippage and market_impact are always 0

Both report total_value (quote value of the fills); executed_levels() lists each fill
with its share of the order quantity.
"""

from decimal import Decimal
from typing import List, Tuple

from core.schemas import BookSnapshot, ExecutedLevel, ImpactMetrics, Ladder, SimulatedOrder


ZERO = Decimal(0)
HUNDRED = Decimal(100)


def _opposite_side(order: SimulatedOrder, snapshot: BookSnapshot) -> Ladder:
    return snapshot.asks if order.side == "Buy" else snapshot.bids


def _within_limit(order: SimulatedOrder, price: Decimal) -> bool:
    if order.side == "Buy":
        return price <= order.price
    return price >= order.price


def _walk(order: SimulatedOrder, levels: Ladder, limited: bool) -> List[Tuple[Decimal, Decimal]]:
    """(price, amount) taken from each level, best first."""
    taken = []
    remaining = order.quantity
    for level in levels:
        if remaining <= 0:
            break
        if limited and not _within_limit(order, level.price):
            break
        take = min(level.size, remaining)
        taken.append((level.price, take))
        remaining -= take
    return taken


def consumed_levels(order: SimulatedOrder, snapshot: BookSnapshot) -> List[Tuple[Decimal, Decimal]]:
    """
    Levels a market order would consume. Limit orders rest on the book and consume nothing here.

    Example:
        >>> consumed_levels(SimulatedOrder(side="Buy", type="Market", quantity=Decimal("1.5")), snapshot)
        [(Decimal('101'), Decimal('1')), (Decimal('102'), Decimal('0.5'))]
    """
    if order.type != "Market":
        return []
    return _walk(order, _opposite_side(order, snapshot), limited=False)


def _fills(order: SimulatedOrder, snapshot: BookSnapshot) -> List[Tuple[Decimal, Decimal]]:
    return _walk(order, _opposite_side(order, snapshot), limited=order.type != "Market")


def executed_levels(order: SimulatedOrder, snapshot: BookSnapshot) -> List[ExecutedLevel]:
    """
    Every level the order would execute against, with the share of the order filled there.

    Unlike consumed_levels() this includes marketable limit orders.

    Example:
        >>> executed_levels(SimulatedOrder(side="Buy", type="Market", quantity=Decimal("2")), snapshot)
        [ExecutedLevel(price=Decimal('101'), quantity=Decimal('1'), percentage=Decimal('50')), ...]
    """
    return [
        ExecutedLevel(price=price, quantity=amount, percentage=amount / order.quantity * HUNDRED)
        for price, amount in _fills(order, snapshot)
    ]


def calculate_impact(order: SimulatedOrder, snapshot: BookSnapshot) -> ImpactMetrics:
    """
    Estimate fill and price impact of a simulated order.

    Args:
        order: Order to evaluate
        snapshot: Book state to evaluate against

    Returns:
        ImpactMetrics
    """
    levels = _opposite_side(order, snapshot)
    best_price = levels[0].price if levels else ZERO
    slippage = ZERO
    market_impact = ZERO

    taken = _fills(order, snapshot)
    filled, cost = _totals(taken)

    if order.type == "Market":
        partial = filled < order.quantity

        if filled > 0 and best_price > 0:
            average = cost / filled
            if order.side == "Buy":
                slippage = (average - best_price) / best_price * HUNDRED
            else:
                slippage = (best_price - average) / best_price * HUNDRED

        # A book too thin for the order reports maximal impact regardless of slippage
        market_impact = HUNDRED if partial else slippage / 10
        time_to_fill = "Partial Fill" if partial else "Immediate"
    elif not taken:
        time_to_fill = "Not Immediately Fillable"
    else:
        time_to_fill = "Partial Fill" if filled < order.quantity else "Immediate"

    return ImpactMetrics(
        fill_percentage=filled / order.quantity * HUNDRED,
        slippage=slippage,
        market_impact=market_impact,
        time_to_fill=time_to_fill,
        filled_quantity=filled,
        estimated_price=cost / filled if filled > 0 else order.price,
        total_value=cost,
    )


def _totals(taken: List[Tuple[Decimal, Decimal]]) -> Tuple[Decimal, Decimal]:
    filled = sum((amount for _, amount in taken), ZERO)
    cost = sum((price * amount for price, amount in taken), ZERO)
    return filled, cost
