"""
Connection Supervisor

Owns the WebSocket lifecycle of one subscription: connect, subscribe, heartbeat,
closure detection, and exponential-backoff reconnects.

State machine (initial IDLE, terminal FAILED):

    IDLE          --connect()-------------------> CONNECTING
    CONNECTING    --transport opens-------------> CONNECTED   (reset retry, on_open, send subscribe, start heartbeat)
    CONNECTING    --transport error-------------> RECONNECTING
    CONNECTED     --heartbeat tick--------------> CONNECTED   (send keepalive)
    CONNECTED     --close code 1000-------------> IDLE        (no retry)
    CONNECTED     --abnormal close / error------> RECONNECTING
    RECONNECTING  --retries exhausted-----------> FAILED
    RECONNECTING  --backoff delay elapsed-------> CONNECTING
    any           --teardown()------------------> IDLE        (cancel everything, close transport)

Every timer and task belongs to this object and teardown() cancels all of them in one
synchronous call, so nothing started by a torn-down supervisor can run afterwards.
Message content is not interpreted here; frames are handed to on_frame as received.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol, Union

import websockets
from websockets.exceptions import ConnectionClosed, InvalidURI

from core.config import settings
from core.logging import get_logger, log_websocket_event
from core.retry import RetrySchedule
from core.schemas import ConnectionState


NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

# Raised when the transport cannot even be constructed (bad URL, bad arguments).
# These are not retried.
CONSTRUCTION_ERRORS = (InvalidURI, ValueError, TypeError)

Frame = Union[str, bytes]


class Transport(Protocol):
    """The slice of a WebSocket connection the supervisor relies on."""

    close_code: Optional[int]

    async def send(self, message: str) -> None: ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None: ...

    def __aiter__(self) -> AsyncIterator[Frame]: ...


TransportFactory = Callable[[str], Awaitable[Transport]]


async def open_websocket(url: str) -> Transport:
    """Default transport: a websockets client connection."""
    return await websockets.connect(url, open_timeout=settings.connect_timeout)


class ConnectionSupervisor:
    """
    Explicit connection state machine.

    Attributes:
        url: WebSocket endpoint
        state: Current ConnectionState
        retry: Backoff bookkeeping, reset on every successful connection
        heartbeat_interval: Seconds between keepalive messages
        label: Venue name used in log lines (defaults to the url)
        instrument: Instrument id used in log lines

    Callbacks (all invoked on the event loop, never concurrently):
        on_frame(frame): every frame received while connected
        on_state(state): every state transition
        on_open(): right after the transport opens, before the CONNECTED transition
            and before the subscription is sent

    Example:
        >>> supervisor = ConnectionSupervisor(
        ...     url="wss://ws.okx.com/ws/v5/public",
        ...     subscribe_message=lambda: '{"op": "subscribe", ...}',
        ...     heartbeat_message=lambda: "ping",
        ...     on_frame=print,
        ... )
        >>> supervisor.connect()
        >>> ...
        >>> await supervisor.close()
    """

    def __init__(
        self,
        url: str,
        subscribe_message: Callable[[], str],
        heartbeat_message: Callable[[], Optional[str]],
        on_frame: Callable[[Frame], None],
        on_state: Optional[Callable[[ConnectionState], None]] = None,
        on_open: Optional[Callable[[], None]] = None,
        retry: Optional[RetrySchedule] = None,
        heartbeat_interval: Optional[float] = None,
        transport_factory: Optional[TransportFactory] = None,
        label: str = "",
        instrument: Optional[str] = None
    ):
        self.url = url
        self.state = ConnectionState.IDLE
        self.retry = retry or RetrySchedule()
        self.heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None else settings.heartbeat_interval
        )
        self.label = label or url
        self.instrument = instrument

        self._subscribe_message = subscribe_message
        self._heartbeat_message = heartbeat_message
        self._on_frame = on_frame
        self._on_state = on_state
        self._on_open = on_open
        self._transport_factory = transport_factory or open_websocket

        self._transport: Optional[Transport] = None
        self._reader: Optional[asyncio.Task] = None
        self._heartbeat: Optional[asyncio.Task] = None
        self._reconnect: Optional[asyncio.TimerHandle] = None

        self.logger = get_logger(__name__)

    # ============================================
    # Public API
    # ============================================

    @property
    def name(self) -> str:
        return f"{self.label} {self.instrument}" if self.instrument else self.label

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect is not None

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat is not None and not self._heartbeat.done()

    def connect(self) -> None:
        """
        Start connecting. Only valid from IDLE.

        Raises:
            RuntimeError: If the supervisor is not idle (a FAILED supervisor never restarts)
        """
        if self.state is not ConnectionState.IDLE:
            raise RuntimeError(f"Cannot connect from state {self.state.value}")
        self._start_attempt()

    def teardown(self) -> Optional[asyncio.Task]:
        """
        Cancel every timer and task, drop the transport and return to IDLE.

        Synchronous so that no callback of this supervisor can interleave with it.
        The reader is cancelled before the transport is closed, so late transport
        events have nobody to reach.

        Returns:
            Task closing the old transport, or None if there was no transport
        """
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None

        current = asyncio.current_task()
        for task in (self._heartbeat, self._reader):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._heartbeat = None
        self._reader = None

        transport, self._transport = self._transport, None
        self.retry.reset()
        self._set_state(ConnectionState.IDLE)

        if transport is None:
            return None
        return asyncio.get_running_loop().create_task(self._close_quietly(transport))

    async def close(self) -> None:
        """Teardown and wait until the old transport is closed."""
        closing = self.teardown()
        if closing is not None:
            await closing

    # ============================================
    # Connection Attempt
    # ============================================

    def _start_attempt(self) -> None:
        self._reconnect = None
        self._set_state(ConnectionState.CONNECTING)
        self._log_event("connecting", details=f"attempt {self.retry.attempt}")
        self._reader = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            transport = await self._transport_factory(self.url)
        except CONSTRUCTION_ERRORS as e:
            self._log_event("error", details=f"Cannot create transport: {e}")
            self._set_state(ConnectionState.FAILED)
            return
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            self._handle_abnormal_close(ABNORMAL_CLOSURE, str(e))
            return

        self._transport = transport
        self.retry.reset()
        # the CONNECTED update must not carry the previous connection's book
        if self._on_open is not None:
            self._on_open()
        self._set_state(ConnectionState.CONNECTED)
        self._log_event("connected")

        try:
            await transport.send(self._subscribe_message())
        except (ConnectionClosed, OSError, RuntimeError) as e:
            self.logger.warning(f"Failed to send subscription to {self.name}: {e}")
            self._transport = None
            await self._close_quietly(transport)
            self._handle_abnormal_close(ABNORMAL_CLOSURE, "subscribe failed")
            return

        self._heartbeat = asyncio.get_running_loop().create_task(self._heartbeat_loop(transport))

        await self._read(transport)

        self._transport = None
        code = transport.close_code if transport.close_code is not None else ABNORMAL_CLOSURE
        if code == NORMAL_CLOSURE:
            self._cancel_heartbeat()
            self._log_event("closed", details="normal closure, not reconnecting")
            self._set_state(ConnectionState.IDLE)
        else:
            self._handle_abnormal_close(code, "connection lost")

    async def _read(self, transport: Transport) -> None:
        try:
            async for frame in transport:
                self._on_frame(frame)
        except ConnectionClosed:
            pass
        except (OSError, websockets.exceptions.WebSocketException) as e:
            self.logger.warning(f"Transport error on {self.name}: {e}")

    # ============================================
    # Reconnection
    # ============================================

    def _handle_abnormal_close(self, code: int, reason: str) -> None:
        self._cancel_heartbeat()
        delay = self.retry.advance()

        if delay is None:
            self._log_event("error", details=f"Max reconnects ({self.retry.max_attempts}) reached. Stopping.")
            self._set_state(ConnectionState.FAILED)
            return

        self._log_event("reconnecting", details=f"Code: {code}, Reason: {reason}. Retry {self.retry.attempt} in {delay}s")
        self._set_state(ConnectionState.RECONNECTING)
        self._reconnect = asyncio.get_running_loop().call_later(delay, self._start_attempt)

    # ============================================
    # Heartbeat
    # ============================================

    async def _heartbeat_loop(self, transport: Transport) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            message = self._heartbeat_message()
            if message is None:
                return
            try:
                await transport.send(message)
            except (ConnectionClosed, OSError, RuntimeError) as e:
                self.logger.warning(f"Failed to send ping to {self.name}: {e}")

    def _cancel_heartbeat(self) -> None:
        if self._heartbeat is not None and not self._heartbeat.done():
            self._heartbeat.cancel()
        self._heartbeat = None

    # ============================================
    # Helpers
    # ============================================

    def _log_event(self, event: str, details: Optional[str] = None) -> None:
        log_websocket_event(self.label, event, self.instrument, details)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        self.logger.debug(f"{self.name}: {self.state.value} -> {state.value}")
        self.state = state
        if self._on_state is not None:
            self._on_state(state)

    async def _close_quietly(self, transport: Transport) -> None:
        try:
            await transport.close(NORMAL_CLOSURE, "Client disconnected")
        except (ConnectionClosed, OSError, RuntimeError) as e:
            self.logger.warning(f"Error closing connection to {self.name}: {e}")
