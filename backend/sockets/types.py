from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from sockets.exceptions import SocketErrorCode


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class ReadyState(StrEnum):
    """Transport-level socket state, finer grained than ConnectionState."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class MessageKind(StrEnum):
    TEXT = "text"
    BINARY = "binary"
    ERROR = "error"
    CLOSE = "close"


def utc_now() -> datetime:
    return datetime.now(UTC)


class LogEntry(BaseModel):
    """One inbound event recorded in a connection's message log."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    timestamp: datetime = Field(default_factory=utc_now)
    kind: MessageKind
    payload: str | bytes


class ConnectionInfo(BaseModel):
    id: str
    endpoint: str
    state: ConnectionState
    ready_state: ReadyState
    message_count: int
    created_at: datetime


class ConnectionListing(BaseModel):
    connections: list[ConnectionInfo]
    total_connections: int
    active_connections: int


class OpenResult(BaseModel):
    success: bool = True
    connection_id: str
    message: str


class SendResult(BaseModel):
    success: bool = True
    message: str
    timestamp: datetime = Field(default_factory=utc_now)


class CloseResult(BaseModel):
    success: bool = True
    message: str


class ListenResult(BaseModel):
    model_config = ConfigDict(ser_json_bytes="base64")

    connection_id: str
    messages: list[LogEntry]
    elapsed_seconds: float
    missed: int = 0  # arrivals trimmed from the log before this read could return them


class ToolError(BaseModel):
    code: SocketErrorCode
    message: str


class ErrorResult(BaseModel):
    success: bool = False
    error: ToolError
