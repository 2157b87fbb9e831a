"""Concurrent WebSocket connection manager: registry, listener, and shutdown cleanup."""

from sockets.connection import Connection
from sockets.exceptions import (
    CloseError,
    ConnectError,
    ConnectionNotFoundError,
    ConnectTimeoutError,
    NotConnectedError,
    SendError,
    SocketError,
    SocketErrorCode,
)
from sockets.lifecycle import LifecycleCoordinator
from sockets.listener import Listener
from sockets.message_log import MessageLog
from sockets.registry import ConnectionRegistry
from sockets.settings import SocketSettings
from sockets.tools import WebSocketToolHandler, create_websocket_tools

__all__ = [
    "CloseError",
    "ConnectError",
    "ConnectTimeoutError",
    "Connection",
    "ConnectionNotFoundError",
    "ConnectionRegistry",
    "LifecycleCoordinator",
    "Listener",
    "MessageLog",
    "NotConnectedError",
    "SendError",
    "SocketError",
    "SocketErrorCode",
    "SocketSettings",
    "WebSocketToolHandler",
    "create_websocket_tools",
]
