"""
Order Book Subscription Service

Entry point for consumers: subscribe(venue, instrument_id, listener) starts a
dedicated OrderBookEngine and returns a handle; unsubscribe(handle) tears it down.

Every BookUpdate of a subscription goes to:
    - the listener passed to subscribe(), if any
    - the global event bus, topic "book:<venue>:<instrument>", as JSON-ready dicts

Subscriptions never share engines, so tearing one down cannot affect another.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.engine import BookListener, OrderBookEngine
from core.logging import get_logger
from core.schemas import BookUpdate, ConnectionState, Venue
from core.venue_manager import venue_manager
from services.event_bus import EventBus, book_topic, bus


@dataclass(eq=False)
class SubscriptionHandle:
    """Opaque token returned by subscribe(); pass it back to unsubscribe()."""

    id: int
    venue: Venue
    instrument_id: str
    topic: str
    engine: OrderBookEngine = field(repr=False)


class BookService:
    """
    Registry of live order book subscriptions.

    Attributes:
        event_bus: Bus receiving every update (defaults to the application bus)
        engine_options: Extra keyword arguments for every OrderBookEngine
                        (depth, throttle, transport_factory, ...)
    """

    def __init__(self, event_bus: Optional[EventBus] = None, **engine_options: Any) -> None:
        self.event_bus = event_bus or bus
        self.engine_options = engine_options
        self._subscriptions: Dict[int, SubscriptionHandle] = {}
        self._ids = itertools.count(1)
        self._logger = get_logger(__name__)

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, venue, instrument_id: str, listener: Optional[BookListener] = None) -> SubscriptionHandle:
        """
        Start streaming one instrument. Must be called from a running event loop.

        Args:
            venue: Venue name (case-insensitive) or Venue member
            instrument_id: Venue-native instrument identifier
            listener: Optional callback receiving every BookUpdate

        Raises:
            ValueError: Unknown venue or empty instrument id
        """
        connector = venue_manager.get_venue(venue)
        instrument_id = (instrument_id or "").strip()
        if not instrument_id:
            raise ValueError("instrument_id must not be empty")

        topic = book_topic(connector.name, instrument_id)
        engine = OrderBookEngine(connector, instrument_id, **self.engine_options)

        def forward(update: BookUpdate) -> None:
            self.event_bus.publish_nowait(topic, update.model_dump(mode="json"))

        engine.add_listener(forward)
        if listener is not None:
            engine.add_listener(listener)

        handle = SubscriptionHandle(
            id=next(self._ids),
            venue=connector.venue,
            instrument_id=instrument_id,
            topic=topic,
            engine=engine,
        )
        self._subscriptions[handle.id] = handle
        self._logger.info(f"Subscribed #{handle.id} {connector.name} {instrument_id}")

        engine.start()
        return handle

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Tear a subscription down. Unknown or already removed handles are ignored."""
        if self._subscriptions.pop(handle.id, None) is None:
            return
        self._logger.info(f"Unsubscribing #{handle.id} {handle.venue.value} {handle.instrument_id}")
        await handle.engine.stop()

    def list_subscriptions(self) -> List[SubscriptionHandle]:
        return list(self._subscriptions.values())

    def find_live(self, venue, instrument_id: str) -> Optional[SubscriptionHandle]:
        """
        Find a subscription for the pair that has published a snapshot.

        Connected subscriptions win over ones whose snapshot is stale.
        """
        venue = Venue.parse(venue)
        candidates = [
            handle for handle in self._subscriptions.values()
            if handle.venue is venue
            and handle.instrument_id == instrument_id
            and handle.engine.latest_snapshot is not None
        ]
        if not candidates:
            return None
        candidates.sort(key=lambda h: (h.engine.state is ConnectionState.CONNECTED, h.id), reverse=True)
        return candidates[0]

    async def shutdown_all(self) -> None:
        """Tear down every subscription."""
        handles = list(self._subscriptions.values())
        if handles:
            self._logger.info(f"Shutting down {len(handles)} book subscription(s)")
        for handle in handles:
            await self.unsubscribe(handle)


# ============================================
# Singleton
# ============================================

_service: Optional[BookService] = None


def get_book_service() -> BookService:
    global _service
    if _service is None:
        _service = BookService()
    return _service
