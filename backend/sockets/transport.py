"""Transport handles that own the underlying socket of a connection."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from functools import partial
from typing import TYPE_CHECKING, Protocol

import structlog
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from sockets.types import MessageKind, ReadyState

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

    from sockets.settings import SocketSettings

logger = structlog.get_logger()

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

# Application close codes a client may send, matching browser WebSocket.close().
_APP_CLOSE_CODE_MIN = 3000
_APP_CLOSE_CODE_MAX = 4999
_MAX_CLOSE_REASON_BYTES = 123


class TransportEvents(Protocol):
    """Receiver for inbound transport events.

    Handlers run on the event loop inside the transport's reader task and
    must only do bounded bookkeeping (append to a log, flip a state flag).
    """

    def on_message(self, kind: MessageKind, payload: str | bytes) -> None: ...

    def on_error(self, error: str) -> None: ...

    def on_close(self, code: int, reason: str) -> None: ...


def check_close_frame(code: int, reason: str) -> None:
    """Reject close codes and reasons a client is not allowed to send."""
    if code != NORMAL_CLOSURE and not (_APP_CLOSE_CODE_MIN <= code <= _APP_CLOSE_CODE_MAX):
        raise ValueError(f"close code must be 1000 or 3000-4999, got {code}")
    if len(reason.encode()) > _MAX_CLOSE_REASON_BYTES:
        raise ValueError(f"close reason must be at most {_MAX_CLOSE_REASON_BYTES} bytes")


class Transport(ABC):
    """
    Abstract handle for one outbound socket.

    This abstraction lets the registry be tested without real sockets.
    Implementations report inbound traffic to the TransportEvents they were
    built with and raise ConnectionError (or another OSError) when a send
    cannot be delivered.
    """

    @property
    @abstractmethod
    def ready_state(self) -> ReadyState:
        """Current socket state as reported by the transport."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """
        Complete the opening handshake and start delivering events.
        """
        ...

    @abstractmethod
    async def send(self, payload: str | bytes) -> None:
        """
        Send a text (str) or binary (bytes) frame.
        """
        ...

    @abstractmethod
    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """
        Start the closing handshake without waiting for it to finish.

        Raises ValueError for a code or reason the peer must not receive.
        """
        ...

    @abstractmethod
    async def wait_closed(self) -> None:
        """
        Wait for a previously started close and the reader to finish.
        """
        ...


# Builds a transport for (endpoint, subprotocols, event receiver).
TransportFactory = Callable[[str, Sequence[str], TransportEvents], Transport]


class WebSocketTransport(Transport):
    def __init__(
        self,
        endpoint: str,
        protocols: Sequence[str],
        events: TransportEvents,
        settings: SocketSettings,
    ) -> None:
        self._endpoint = endpoint
        self._protocols = list(protocols)
        self._events = events
        self._settings = settings
        self._ws: ClientConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._closing: asyncio.Task[None] | None = None

    @property
    def ready_state(self) -> ReadyState:
        if self._ws is None:
            return ReadyState.CONNECTING
        return ReadyState[self._ws.state.name]

    async def connect(self) -> None:
        # hard ceiling; open() usually stops waiting sooner and leaves the rest to this
        self._ws = await connect(
            self._endpoint,
            subprotocols=self._protocols or None,
            open_timeout=self._settings.handshake_timeout_seconds,
            close_timeout=self._settings.close_timeout_seconds,
            ping_interval=self._settings.keepalive_interval_seconds,
            max_size=self._settings.max_message_bytes,
        )
        self._reader = asyncio.create_task(self._read_loop(self._ws), name=f"ws-reader {self._endpoint}")

    async def send(self, payload: str | bytes) -> None:
        if self._ws is None:
            raise ConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(payload)
        except ConnectionClosed as e:
            raise ConnectionError(f"WebSocket already closed: {e}") from e

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        check_close_frame(code, reason)
        if self._ws is None or self._closing is not None:
            return
        self._closing = asyncio.create_task(self._close_handshake(self._ws, code, reason))

    async def wait_closed(self) -> None:
        tasks = [task for task in (self._closing, self._reader) if task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _close_handshake(self, ws: ClientConnection, code: int, reason: str) -> None:
        try:
            await ws.close(code=code, reason=reason)
        except Exception:
            logger.exception("websocket close handshake failed", endpoint=self._endpoint)

    async def _read_loop(self, ws: ClientConnection) -> None:
        """Forward inbound frames until the socket closes.

        A close that ends without a close frame from the peer is reported
        as an error event before the close event. Any received close frame,
        whatever its code, counts as a clean close.
        """
        try:
            async for message in ws:
                kind = MessageKind.TEXT if isinstance(message, str) else MessageKind.BINARY
                self._events.on_message(kind, message)
        except ConnectionClosedError as e:
            if e.rcvd is None:
                self._events.on_error(str(e))
        self._events.on_close(ws.close_code or ABNORMAL_CLOSURE, ws.close_reason or "")


def websocket_transport_factory(settings: SocketSettings) -> TransportFactory:
    """Bind settings into a factory that builds WebSocketTransport instances."""
    return partial(WebSocketTransport, settings=settings)
