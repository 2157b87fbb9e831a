"""WebSocket tools exposed to the calling agent.

The dispatcher that speaks the agent's wire protocol lives outside this
package; it asks WebSocketToolHandler for tool definitions and hands it
named invocations. One handler, and with it one ConnectionRegistry, is built
at startup by create_websocket_tools() and shared by every invocation for
the life of the process, so connections opened by one call are visible to
the next.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from shared.validators import validate_subprotocols
from sockets.exceptions import SocketError, SocketErrorCode
from sockets.lifecycle import LifecycleCoordinator
from sockets.listener import Listener
from sockets.registry import ConnectionRegistry
from sockets.transport import NORMAL_CLOSURE
from sockets.types import ErrorResult, MessageKind, OpenResult, ToolError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sockets.settings import SocketSettings
    from sockets.transport import TransportFactory

logger = structlog.get_logger()

_MS_PER_SECOND = 1000


class UnknownToolError(ValueError):
    """The requested tool name is not one of the WebSocket tools."""


class _ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectArgs(_ToolArgs):
    url: str = Field(min_length=1, description="WebSocket URL")
    protocols: list[str] | None = Field(default=None, description="WebSocket protocols")
    timeout: int | None = Field(default=None, gt=0, description="Connection timeout in ms (default 10000)")

    @field_validator("protocols")
    @classmethod
    def validate_protocols(cls, v: list[str] | None) -> list[str] | None:
        return validate_subprotocols(v) if v is not None else None


class SendArgs(_ToolArgs):
    connection_id: str = Field(description="Connection ID")
    message: str = Field(description="Message to send")
    kind: Literal["text", "binary"] = Field(default="text", alias="type", description="Frame type")


class ListenArgs(_ToolArgs):
    connection_id: str = Field(description="Connection ID")
    duration: float | None = Field(default=None, ge=0, description="Listen duration in seconds (default 30)")
    max_messages: int | None = Field(default=None, ge=1, description="Maximum messages to collect (default 100)")


class CloseArgs(_ToolArgs):
    connection_id: str = Field(description="Connection ID")
    code: int = Field(default=NORMAL_CLOSURE, description="Close code")
    reason: str = Field(default="", description="Close reason")


class ListConnectionsArgs(_ToolArgs):
    pass


class PingArgs(_ToolArgs):
    connection_id: str = Field(description="Connection ID")
    data: str | None = Field(default=None, description="Ping data")


@dataclass(frozen=True)
class _Tool:
    name: str
    description: str
    args_model: type[_ToolArgs]
    run: Callable[[Any], Awaitable[BaseModel]]


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "arguments"
        parts.append(f"{location}: {detail['msg']}")
    return "; ".join(parts)


class WebSocketToolHandler:
    def __init__(self, registry: ConnectionRegistry, listener: Listener | None = None) -> None:
        self._registry = registry
        self._listener = listener or Listener(registry)
        self._lifecycle = LifecycleCoordinator(registry)
        self._tools = {
            tool.name: tool
            for tool in (
                _Tool("ws_connect", "Connect to a WebSocket server", ConnectArgs, self._connect),
                _Tool("ws_send", "Send message to WebSocket connection", SendArgs, self._send),
                _Tool("ws_listen", "Listen for WebSocket messages", ListenArgs, self._listen),
                _Tool("ws_close", "Close WebSocket connection", CloseArgs, self._close),
                _Tool("ws_list_connections", "List active WebSocket connections", ListConnectionsArgs, self._list),
                _Tool("ws_ping", "Send ping to WebSocket connection", PingArgs, self._ping),
            )
        }

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def lifecycle(self) -> LifecycleCoordinator:
        return self._lifecycle

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def tool_definitions(self) -> list[dict[str, Any]]:
        """Describe each tool as {name, description, inputSchema}."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.args_model.model_json_schema(by_alias=True),
            }
            for tool in self._tools.values()
        ]

    async def execute(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a tool and return its JSON-ready result.

        Invalid arguments and SocketErrors come back as
        {"success": False, "error": {"code", "message"}}.

        Raises UnknownToolError for a name that is not a WebSocket tool.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(f"Unknown websocket tool: {name}")

        try:
            args = tool.args_model.model_validate(arguments or {})
        except ValidationError as e:
            return self._error(SocketErrorCode.INVALID_ARGUMENTS, _format_validation_error(e))

        try:
            result = await tool.run(args)
        except SocketError as e:
            logger.info("websocket tool failed", tool=name, code=e.code, error=str(e))
            return self._error(e.code, str(e))
        return result.model_dump(mode="json")

    async def cleanup(self) -> None:
        await self._lifecycle.cleanup()

    @staticmethod
    def _error(code: SocketErrorCode, message: str) -> dict[str, Any]:
        return ErrorResult(error=ToolError(code=code, message=message)).model_dump(mode="json")

    async def _connect(self, args: ConnectArgs) -> OpenResult:
        timeout = args.timeout / _MS_PER_SECOND if args.timeout is not None else None
        connection_id = await self._registry.open(args.url, args.protocols, connect_timeout=timeout)
        return OpenResult(connection_id=connection_id, message=f"Connected to {args.url}")

    async def _send(self, args: SendArgs) -> BaseModel:
        return await self._registry.send(args.connection_id, args.message, MessageKind(args.kind))

    async def _listen(self, args: ListenArgs) -> BaseModel:
        return await self._listener.listen(args.connection_id, args.duration, args.max_messages)

    async def _close(self, args: CloseArgs) -> BaseModel:
        return await self._registry.close(args.connection_id, args.code, args.reason)

    async def _list(self, _args: ListConnectionsArgs) -> BaseModel:
        return self._registry.list_connections()

    async def _ping(self, args: PingArgs) -> BaseModel:
        return await self._registry.ping(args.connection_id, args.data)


def create_websocket_tools(
    settings: SocketSettings | None = None,
    transport_factory: TransportFactory | None = None,
) -> WebSocketToolHandler:
    """Build the process-wide registry and the handler bound to it.

    Call once at startup and keep the returned handler for the life of the
    process; call its cleanup() on shutdown.
    """
    registry = ConnectionRegistry(settings, transport_factory=transport_factory)
    return WebSocketToolHandler(registry)
