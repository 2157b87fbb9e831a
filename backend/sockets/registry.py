"""Process-wide registry of open socket connections.

All mutating operations on connections go through ConnectionRegistry. A
connection becomes visible in the registry only once its opening handshake
has completed, and leaves it the moment close() is called, whether or not
the closing handshake has finished.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from functools import partial
from typing import TYPE_CHECKING, Any

import structlog

from sockets.connection import Connection
from sockets.exceptions import (
    CloseError,
    ConnectError,
    ConnectionNotFoundError,
    ConnectTimeoutError,
    NotConnectedError,
    SendError,
)
from sockets.message_log import MessageLog
from sockets.settings import SocketSettings
from sockets.transport import NORMAL_CLOSURE, websocket_transport_factory
from sockets.types import (
    CloseResult,
    ConnectionListing,
    ConnectionState,
    MessageKind,
    SendResult,
    utc_now,
)

if TYPE_CHECKING:
    from collections.abc import Coroutine, Sequence

    from sockets.transport import TransportFactory

logger = structlog.get_logger()

CONNECTION_ID_PREFIX = "ws_"
ORPHAN_CLOSE_REASON = "connect timeout"
SHUTDOWN_CLOSE_REASON = "shutdown"


class ConnectionRegistry:
    def __init__(
        self,
        settings: SocketSettings | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        self._settings = settings or SocketSettings()
        self._transport_factory = transport_factory or websocket_transport_factory(self._settings)
        self._ids = itertools.count(1)
        self._connections: dict[str, Connection] = {}  # connection_id -> open or remotely closed
        self._pending: dict[str, Connection] = {}  # connection_id -> handshake in flight
        self._connecting: dict[str, asyncio.Task[None]] = {}  # connection_id -> connect task, caller gone or not
        self._abandoned: set[str] = set()  # pending ids detached by detach_all
        self._background: set[asyncio.Task[None]] = set()

    @property
    def settings(self) -> SocketSettings:
        return self._settings

    @property
    def connects_in_flight(self) -> int:
        """Connect attempts not yet finished, whether or not a caller still waits on them."""
        return len(self._connecting)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def get(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        return connection

    def _next_id(self) -> str:
        return f"{CONNECTION_ID_PREFIX}{next(self._ids)}"

    async def open(
        self,
        endpoint: str,
        protocols: Sequence[str] | None = None,
        connect_timeout: float | None = None,
    ) -> str:
        """Connect to endpoint and return the new connection id.

        The connect runs as its own task and is raced against the timeout.
        Losing the race abandons only this call's wait: if the socket opens
        afterwards it is closed straight away instead of being registered.

        Raises ConnectTimeoutError or ConnectError; neither leaves anything
        in the registry. detach_all() during the wait also ends in
        ConnectError.
        """
        timeout = connect_timeout if connect_timeout is not None else self._settings.connect_timeout_seconds
        subprotocols = list(protocols) if protocols is not None else self._settings.default_protocols

        connection_id = self._next_id()
        connection = Connection(connection_id, endpoint, log=MessageLog(self._settings.log_capacity))
        connection.attach(self._transport_factory(endpoint, subprotocols, connection))

        log = logger.bind(connection_id=connection_id, endpoint=endpoint)
        log.info("websocket connecting", timeout=timeout)

        self._pending[connection_id] = connection
        connect_task = asyncio.create_task(connection.transport.connect(), name=f"connect {connection_id}")
        self._connecting[connection_id] = connect_task
        connect_task.add_done_callback(lambda _task: self._connecting.pop(connection_id, None))
        try:
            done, _ = await asyncio.wait({connect_task}, timeout=timeout)
        except asyncio.CancelledError:
            connect_task.add_done_callback(partial(self._close_orphan, connection, ORPHAN_CLOSE_REASON))
            raise
        finally:
            self._pending.pop(connection_id, None)

        if connection_id in self._abandoned:
            self._abandoned.discard(connection_id)
            connect_task.add_done_callback(partial(self._close_orphan, connection, SHUTDOWN_CLOSE_REASON))
            log.warning("websocket connect abandoned by shutdown")
            raise ConnectError(connection_id, f"WebSocket connection to {endpoint} abandoned during shutdown")

        if not done:
            connect_task.add_done_callback(partial(self._close_orphan, connection, ORPHAN_CLOSE_REASON))
            log.warning("websocket connect timed out")
            raise ConnectTimeoutError(connection_id, f"WebSocket connection to {endpoint} timed out after {timeout}s")

        error = connect_task.exception()
        if error is not None:
            log.warning("websocket connect failed", error=str(error))
            raise ConnectError(connection_id, f"WebSocket error: {error}") from error

        connection.mark_open()
        self._connections[connection_id] = connection
        log.info("websocket connected")
        return connection_id

    def _close_orphan(self, connection: Connection, reason: str, connect_task: asyncio.Task[None]) -> None:
        """Close a socket whose open() call already gave up waiting for it."""
        if connect_task.cancelled() or connect_task.exception() is not None:
            return
        logger.info("closing orphaned websocket", connection_id=connection.connection_id, reason=reason)
        self._spawn(self._close_quietly(connection, NORMAL_CLOSURE, reason))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    async def _close_quietly(connection: Connection, code: int, reason: str) -> None:
        try:
            await connection.transport.close(code, reason)
        except (OSError, RuntimeError, ValueError):
            logger.exception("failed to close websocket", connection_id=connection.connection_id)

    def _require_open(self, connection_id: str) -> Connection:
        if connection_id in self._pending:
            raise NotConnectedError(connection_id)
        connection = self.get(connection_id)
        if not connection.is_open:
            raise NotConnectedError(connection_id)
        return connection

    async def send(
        self,
        connection_id: str,
        payload: str | bytes,
        kind: MessageKind = MessageKind.TEXT,
    ) -> SendResult:
        """Send a frame on an open connection.

        Binary sends carry the UTF-8 encoding of a str payload. Outbound
        frames are never recorded in the connection's log.
        """
        connection = self._require_open(connection_id)
        if kind not in (MessageKind.TEXT, MessageKind.BINARY):
            raise ValueError(f"cannot send a {kind} frame")
        if kind == MessageKind.BINARY:
            frame: str | bytes = payload.encode() if isinstance(payload, str) else payload
        elif isinstance(payload, bytes):
            try:
                frame = payload.decode()
            except UnicodeDecodeError as e:
                raise ValueError("text frame payload must be valid UTF-8") from e
        else:
            frame = payload

        try:
            await connection.transport.send(frame)
        except (OSError, RuntimeError) as e:
            raise SendError(connection_id, f"Failed to send message: {e}") from e
        return SendResult(message="Message sent successfully")

    async def ping(self, connection_id: str, data: str | None = None) -> SendResult:
        """Send an application-level ping as an ordinary text message.

        This is not a protocol ping frame: the peer sees a JSON text message
        and an echoing peer returns it like any other message.
        """
        connection = self._require_open(connection_id)
        message = json.dumps({"type": "ping", "data": data or "ping", "timestamp": utc_now().isoformat()})
        try:
            await connection.transport.send(message)
        except (OSError, RuntimeError) as e:
            raise SendError(connection_id, f"Failed to send ping: {e}") from e
        return SendResult(message="Ping sent")

    async def close(self, connection_id: str, code: int = NORMAL_CLOSURE, reason: str = "") -> CloseResult:
        """Remove the connection and start closing its socket.

        The id is gone from the registry before the transport is asked to
        close, so it stays gone even if the transport rejects the request
        (CloseError). Frames that arrive during the closing handshake are
        not retrievable afterwards.
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)

        logger.info("websocket close requested", connection_id=connection_id, code=code, reason=reason)
        try:
            await connection.transport.close(code, reason)
        except (OSError, RuntimeError, ValueError) as e:
            raise CloseError(connection_id, f"Failed to close connection: {e}") from e
        return CloseResult(message=f"Connection {connection_id} closed")

    def list_connections(self) -> ConnectionListing:
        """Snapshot every registered connection, in no particular order."""
        snapshots = [connection.snapshot() for connection in list(self._connections.values())]
        return ConnectionListing(
            connections=snapshots,
            total_connections=len(snapshots),
            active_connections=sum(1 for s in snapshots if s.state == ConnectionState.OPEN),
        )

    def detach_all(self) -> list[Connection]:
        """Remove and return every registered connection.

        Connects still in flight are cancelled, including ones whose open()
        already timed out. An open() still waiting on one raises ConnectError
        and never registers its socket.
        """
        connections = list(self._connections.values())
        self._connections.clear()
        self._abandoned.update(self._pending)
        self._pending.clear()
        for connect_task in list(self._connecting.values()):
            connect_task.cancel()
        return connections
