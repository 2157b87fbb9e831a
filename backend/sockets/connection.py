from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sockets.message_log import MessageLog
from sockets.types import ConnectionInfo, ConnectionState, LogEntry, MessageKind, utc_now

if TYPE_CHECKING:
    from datetime import datetime

    from sockets.transport import Transport

logger = structlog.get_logger()


class Connection:
    """One tracked socket session.

    Lifecycle:
    - Created by ConnectionRegistry.open in the CONNECTING state
    - mark_open() moves it to OPEN once the handshake completes
    - A close event from the transport moves it to CLOSED (terminal)

    The Connection is the event receiver for its own transport: inbound
    frames, errors and the close event are recorded in its log. The transport
    handle is owned exclusively by the Connection; other components reach the
    socket only through the registry.
    """

    def __init__(
        self,
        connection_id: str,
        endpoint: str,
        log: MessageLog | None = None,
        created_at: datetime | None = None,
    ) -> None:
        self._connection_id = connection_id
        self._endpoint = endpoint
        self._log = log if log is not None else MessageLog()
        self._created_at = created_at or utc_now()
        self._state = ConnectionState.CONNECTING
        self._transport: Transport | None = None

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def log(self) -> MessageLog:
        return self._log

    @property
    def transport(self) -> Transport:
        if self._transport is None:
            raise RuntimeError(f"connection {self._connection_id} has no transport")
        return self._transport

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    def attach(self, transport: Transport) -> None:
        self._transport = transport

    def mark_open(self) -> None:
        """Move CONNECTING to OPEN. No effect once the connection has closed."""
        if self._state == ConnectionState.CONNECTING:
            self._state = ConnectionState.OPEN

    def on_message(self, kind: MessageKind, payload: str | bytes) -> None:
        self._log.append(LogEntry(kind=kind, payload=payload))

    def on_error(self, error: str) -> None:
        # errors are recorded but never end the connection on their own
        logger.warning("websocket error", connection_id=self._connection_id, error=error)
        self._log.append(LogEntry(kind=MessageKind.ERROR, payload=error))

    def on_close(self, code: int, reason: str) -> None:
        self._state = ConnectionState.CLOSED
        logger.info("websocket closed", connection_id=self._connection_id, code=code, reason=reason)
        self._log.append(LogEntry(kind=MessageKind.CLOSE, payload=f"Connection closed: {code} {reason}"))

    def snapshot(self) -> ConnectionInfo:
        return ConnectionInfo(
            id=self._connection_id,
            endpoint=self._endpoint,
            state=self._state,
            ready_state=self.transport.ready_state,
            message_count=len(self._log),
            created_at=self._created_at,
        )
