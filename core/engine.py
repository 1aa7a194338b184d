"""
Order Book Engine

One engine instance streams one instrument from one venue:

    transport frame
        -> decode_frame()                 (JSON or nothing)
        -> BookNormalizer.normalize()     (BookDelta or nothing)
        -> LadderMerger.apply()           (authoritative ladders)
        -> UpdateScheduler                (throttled)
        -> BookSnapshot pushed to listeners as a BookUpdate

Connection status changes are pushed immediately; ladder publishes are throttled.
A fresh connection always starts from empty ladders and no snapshot, and stop() discards the
ladders together with every pending timer.
"""

from typing import Callable, List, Optional

from core.config import settings
from core.ladder import LadderMerger
from core.logging import get_logger
from core.normalizer import decode_frame
from core.retry import RetrySchedule
from core.scheduler import TimerFactory, UpdateScheduler
from core.schemas import BookSnapshot, BookUpdate, ConnectionState, ConnectionStatus
from core.supervisor import ConnectionSupervisor, Frame, TransportFactory
from core.venue_interface import VenueInterface


BookListener = Callable[[BookUpdate], None]

# Plain-text keepalive replies some venues send back
PONG_FRAMES = {"pong", b"pong"}


class OrderBookEngine:
    """
    Live, depth-limited order book for a single venue and instrument.

    Example:
        >>> engine = OrderBookEngine(venue_manager.get_venue("okx"), "BTC-USDT", listener=print)
        >>> engine.start()
        >>> ...
        >>> await engine.stop()
    """

    def __init__(
        self,
        venue: VenueInterface,
        instrument_id: str,
        listener: Optional[BookListener] = None,
        depth: Optional[int] = None,
        throttle: Optional[float] = None,
        heartbeat_interval: Optional[float] = None,
        retry: Optional[RetrySchedule] = None,
        transport_factory: Optional[TransportFactory] = None,
        clock: Optional[Callable[[], float]] = None,
        call_later: Optional[TimerFactory] = None
    ):
        self.venue = venue
        self.instrument_id = instrument_id
        self.latest_snapshot: Optional[BookSnapshot] = None
        self.publish_count = 0
        self.dropped_frames = 0

        self._listeners: List[BookListener] = [listener] if listener else []
        self.logger = get_logger(__name__)

        self.normalizer = venue.create_normalizer()
        self.merger = LadderMerger(depth if depth is not None else settings.book_depth)
        self.scheduler = UpdateScheduler(
            self._publish,
            window=throttle,
            clock=clock,
            call_later=call_later,
        )
        self.supervisor = ConnectionSupervisor(
            url=venue.ws_url,
            subscribe_message=lambda: venue.build_subscribe_message(instrument_id),
            heartbeat_message=venue.build_heartbeat_message,
            on_frame=self._handle_frame,
            on_state=self._handle_state,
            on_open=self._handle_open,
            retry=retry,
            heartbeat_interval=heartbeat_interval,
            transport_factory=transport_factory,
            label=venue.name,
            instrument=instrument_id,
        )

    def __repr__(self) -> str:
        return f"<OrderBookEngine {self.venue.name} {self.instrument_id} state={self.state.value}>"

    # ============================================
    # Public API
    # ============================================

    @property
    def state(self) -> ConnectionState:
        return self.supervisor.state

    @property
    def status(self) -> ConnectionStatus:
        return ConnectionStatus.from_state(self.state)

    def add_listener(self, listener: BookListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: BookListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        """Open the connection. Must be called from a running event loop."""
        self.supervisor.connect()

    async def stop(self) -> None:
        """
        Tear the engine down.

        Everything that could still fire (throttle timer, reconnect timer, heartbeat,
        reader) is cancelled before this coroutine first yields; only the close of
        the old transport is awaited afterwards.
        """
        self.scheduler.cancel()
        self.merger.clear()
        self.latest_snapshot = None
        closing = self.supervisor.teardown()
        self._listeners.clear()
        if closing is not None:
            await closing

    def current_update(self) -> BookUpdate:
        """Status and latest snapshot as they are right now."""
        return BookUpdate(
            venue=self.venue.venue,
            instrument_id=self.instrument_id,
            status=self.status,
            state=self.state,
            snapshot=self.latest_snapshot,
            attempt=self.supervisor.retry.attempt,
        )

    # ============================================
    # Supervisor Callbacks
    # ============================================

    def _handle_open(self) -> None:
        self.merger.clear()
        self.latest_snapshot = None
        self.scheduler.reset()

    def _handle_state(self, state: ConnectionState) -> None:
        if state is not ConnectionState.CONNECTED:
            # a deferred publish would otherwise show ladders from a dead connection
            self.scheduler.cancel()
        self._notify()

    def _handle_frame(self, frame: Frame) -> None:
        if frame in PONG_FRAMES:
            return

        message = decode_frame(frame)
        if message is None:
            self.dropped_frames += 1
            self.logger.debug(f"Dropping non-JSON frame from {self.venue.name}")
            return

        delta = self.normalizer.normalize(message)
        if delta is None or delta.is_empty:
            return

        if self.merger.apply(delta):
            self.scheduler.on_ladder_changed()

    # ============================================
    # Publishing
    # ============================================

    def _publish(self) -> None:
        self.latest_snapshot = self.merger.snapshot(self.venue.venue, self.instrument_id)
        self.publish_count += 1
        self._notify()

    def _notify(self) -> None:
        update = self.current_update()
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as e:
                self.logger.error(f"Book listener failed for {self.venue.name} {self.instrument_id}: {e}")
