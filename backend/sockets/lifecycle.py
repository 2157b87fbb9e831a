"""Shutdown cleanup for every connection in the registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sockets.registry import SHUTDOWN_CLOSE_REASON
from sockets.transport import NORMAL_CLOSURE

if TYPE_CHECKING:
    from types import TracebackType

    from sockets.registry import ConnectionRegistry

logger = structlog.get_logger()


class LifecycleCoordinator:
    """Force-close all connections when the process shuts down.

    The owner of the process calls cleanup() once on its shutdown signal, or
    wraps its serving loop in ``async with LifecycleCoordinator(registry):``.
    Cleanup is best-effort and idempotent: a failing close is logged and the
    remaining connections are still closed, and a second call finds an
    empty registry and does nothing.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def cleanup(self) -> int:
        """Close every registered connection. Return how many were detached."""
        connections = self._registry.detach_all()
        for connection in connections:
            try:
                await connection.transport.close(NORMAL_CLOSURE, SHUTDOWN_CLOSE_REASON)
            except Exception:
                logger.exception("error closing connection", connection_id=connection.connection_id)
        if connections:
            logger.info("closed all websocket connections", count=len(connections))
        return len(connections)

    async def __aenter__(self) -> LifecycleCoordinator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.cleanup()
