"""
Normalized Data Schemas

This module defines Pydantic models for every data type the order book engine
produces or consumes. These schemas provide a unified, venue-agnostic data format.

Key Principle:
    Regardless of which venue the data comes from (OKX, Bybit, Deribit),
    it gets normalized into these standardized schemas. Nothing downstream of
    the message normalizer knows which venue produced a delta.

Models:
    - PriceLevel: One price level of a ladder with its cumulative size
    - BookDelta: Normalized incremental (price, size) changes for both sides
    - BookSnapshot: Immutable point-in-time view of both ladders
    - BookUpdate: Push payload combining connection status and latest snapshot
    - Instrument: Tradable instrument metadata (used by rendering, not the engine)
    - SimulatedOrder / ImpactMetrics / ImpactReport: Inputs and outputs of the impact calculator

Prices and sizes are Decimal so that ladder keys compare exactly.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Literal
from pydantic import BaseModel, Field, ConfigDict


# ============================================
# Enumerations
# ============================================

class Venue(str, Enum):
    """Supported venues. Exactly one per engine instance."""

    OKX = "OKX"
    BYBIT = "Bybit"
    DERIBIT = "Deribit"

    @classmethod
    def parse(cls, value: str) -> "Venue":
        """
        Case-insensitive lookup.

        Raises:
            ValueError: If the venue is not supported
        """
        if isinstance(value, Venue):
            return value
        for venue in cls:
            if venue.value.lower() == str(value).lower():
                return venue
        available = ", ".join(v.value for v in cls)
        raise ValueError(f"Venue '{value}' is not supported. Available venues: {available}")


class ConnectionState(str, Enum):
    """Internal state of the connection supervisor."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


class ConnectionStatus(str, Enum):
    """
    Consumer-facing connection status.

    FALLBACK is reserved for a degraded-source mode and is never emitted by the engine.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    FALLBACK = "fallback"

    @classmethod
    def from_state(cls, state: ConnectionState) -> "ConnectionStatus":
        return _STATE_TO_STATUS[state]


_STATE_TO_STATUS = {
    ConnectionState.IDLE: ConnectionStatus.DISCONNECTED,
    ConnectionState.CLOSING: ConnectionStatus.DISCONNECTED,
    ConnectionState.CONNECTING: ConnectionStatus.CONNECTING,
    ConnectionState.RECONNECTING: ConnectionStatus.CONNECTING,
    ConnectionState.CONNECTED: ConnectionStatus.CONNECTED,
    ConnectionState.FAILED: ConnectionStatus.ERROR,
}


class Side(str, Enum):
    BID = "bid"
    ASK = "ask"


# ============================================
# Order Book Schemas
# ============================================

class PriceLevel(BaseModel):
    """
    One level of a ladder.

    Attributes:
        price: Level price
        size: Resting size at this price (always > 0 while present in a ladder)
        total: Cumulative size from the best level down to and including this one

    Example:
        >>> PriceLevel(price=Decimal("100"), size=Decimal("2"), total=Decimal("2"))
    """

    model_config = ConfigDict(frozen=True)

    price: Decimal = Field(..., description="Level price")
    size: Decimal = Field(..., gt=0, description="Resting size at this price")
    total: Decimal = Field(..., gt=0, description="Cumulative size up to this level")


Ladder = Tuple[PriceLevel, ...]
"""Sorted, depth-bounded sequence of price levels for one side."""

DeltaEntry = Tuple[Decimal, Decimal]
"""(price, size) change. Size 0 removes the level."""


class BookDelta(BaseModel):
    """
    Venue-agnostic incremental change produced by a normalizer.

    Attributes:
        bids: (price, size) changes for the bid side
        asks: (price, size) changes for the ask side
        is_snapshot: True when the venue marked the frame as a full book image;
                     the ladders are rebuilt from this delta instead of merged
        timestamp: Venue event time, when the frame carries one
    """

    model_config = ConfigDict(frozen=True)

    bids: List[DeltaEntry] = Field(default_factory=list)
    asks: List[DeltaEntry] = Field(default_factory=list)
    is_snapshot: bool = False
    timestamp: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks and not self.is_snapshot


class BookSnapshot(BaseModel):
    """
    Immutable point-in-time view of both ladders.

    A new snapshot is always a full replacement of the previous one.
    Spread and mid price are None when either side is empty.

    Example:
        >>> snapshot.bids[0].price, snapshot.asks[0].price
        (Decimal('100'), Decimal('101'))
        >>> snapshot.spread, snapshot.mid_price
        (Decimal('1'), Decimal('100.5'))
    """

    model_config = ConfigDict(frozen=True)

    venue: Venue
    instrument_id: str
    bids: Ladder = ()
    asks: Ladder = ()
    spread: Optional[Decimal] = None
    mid_price: Optional[Decimal] = None
    timestamp: datetime = Field(..., description="Publish time in UTC")

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None


class BookUpdate(BaseModel):
    """
    Payload pushed to consumers on every status change and every throttled publish.

    Attributes:
        status: Consumer-facing connection status
        state: Internal supervisor state (finer grained than status)
        snapshot: Latest published snapshot; stale whenever status is not "connected"
        attempt: Current reconnect attempt (0 while healthy)
    """

    model_config = ConfigDict(frozen=True)

    venue: Venue
    instrument_id: str
    status: ConnectionStatus
    state: ConnectionState
    snapshot: Optional[BookSnapshot] = None
    attempt: int = 0


# ============================================
# Instrument Metadata
# ============================================

class Instrument(BaseModel):
    """
    Tradable instrument discovered over REST.

    Only rendering and order forms use tick/lot sizes; the engine needs
    nothing but instrument_id.
    """

    venue: Venue
    instrument_id: str = Field(..., examples=["BTC-USDT", "BTCUSDT", "BTC-PERPETUAL"])
    base_currency: str
    quote_currency: str
    tick_size: Decimal
    lot_size: Decimal
    kind: Optional[str] = Field(None, description="Venue instrument type, e.g. 'future'")


# ============================================
# Order Impact Schemas
# ============================================

class SimulatedOrder(BaseModel):
    """Hypothetical order evaluated against a snapshot."""

    side: Literal["Buy", "Sell"]
    type: Literal["Market", "Limit"]
    quantity: Decimal = Field(..., gt=0)
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Limit price (ignored for market orders)")


class ImpactMetrics(BaseModel):
    """
    Result of walking a simulated order through a snapshot.

    Attributes:
        fill_percentage: Filled quantity as a percentage of the order quantity
        slippage: Percentage distance of the average fill from the best price
        market_impact: 100 for partially filled market orders, slippage / 10 otherwise
        time_to_fill: "Immediate", "Partial Fill" or "Not Immediately Fillable"
        filled_quantity: Quantity that would fill against visible liquidity
        estimated_price: Average fill price, or the order price if nothing fills
        total_value: Sum of price * quantity over every fill
    """

    fill_percentage: Decimal
    slippage: Decimal
    market_impact: Decimal
    time_to_fill: Literal["Immediate", "Partial Fill", "Not Immediately Fillable"]
    filled_quantity: Decimal
    estimated_price: Decimal
    total_value: Decimal = Field(default=Decimal("0"), description="Quote value of the filled quantity")


class ExecutedLevel(BaseModel):
    """
    One level an order would execute against.

    Attributes:
        percentage: Share of the order quantity filled at this level
    """

    price: Decimal
    quantity: Decimal
    percentage: Decimal


class ImpactReport(BaseModel):
    """Response of the impact endpoint: metrics plus the levels the order executes against."""

    venue: Venue
    instrument_id: str
    status: ConnectionStatus
    snapshot_timestamp: datetime
    metrics: ImpactMetrics
    consumed_levels: List[DeltaEntry] = Field(default_factory=list)
    executed_levels: List[ExecutedLevel] = Field(default_factory=list)
