"""Typed errors for connection manager operations.

Every failure an operation can report to its caller is a subclass of
SocketError carrying a stable SocketErrorCode. The tool layer catches
SocketError at its boundary and converts it to a structured error result;
nothing in the manager retries on its own.
"""

from enum import StrEnum


class SocketErrorCode(StrEnum):
    CONNECT_TIMEOUT = "connect_timeout"
    CONNECT_ERROR = "connect_error"
    NOT_FOUND = "not_found"
    NOT_CONNECTED = "not_connected"
    SEND_ERROR = "send_error"
    CLOSE_ERROR = "close_error"
    INVALID_ARGUMENTS = "invalid_arguments"


class SocketError(Exception):
    """Base class for connection manager failures.

    Attributes:
        connection_id: The connection the operation referred to.

    """

    code: SocketErrorCode

    def __init__(self, connection_id: str, message: str) -> None:
        self.connection_id = connection_id
        super().__init__(message)


class ConnectTimeoutError(SocketError):
    """The socket did not open within the connect timeout."""

    code = SocketErrorCode.CONNECT_TIMEOUT


class ConnectError(SocketError):
    """The transport failed before the socket opened."""

    code = SocketErrorCode.CONNECT_ERROR


class ConnectionNotFoundError(SocketError):
    """The id was never issued, or the connection was already closed."""

    code = SocketErrorCode.NOT_FOUND

    def __init__(self, connection_id: str) -> None:
        super().__init__(connection_id, f"Connection {connection_id} not found")


class NotConnectedError(SocketError):
    """The connection exists but is not open."""

    code = SocketErrorCode.NOT_CONNECTED

    def __init__(self, connection_id: str) -> None:
        super().__init__(connection_id, f"Connection {connection_id} is not connected")


class SendError(SocketError):
    """The transport rejected an outbound frame."""

    code = SocketErrorCode.SEND_ERROR


class CloseError(SocketError):
    """The transport rejected a close request.

    The connection has already been removed from the registry when this is raised.
    """

    code = SocketErrorCode.CLOSE_ERROR
