"""Budgeted delta reads over a connection's message log."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from sockets.types import ListenResult

if TYPE_CHECKING:
    from sockets.registry import ConnectionRegistry

logger = structlog.get_logger()


class Listener:
    """Collect messages that arrive on a connection within a time and count budget.

    A listen is a pull-based read, not a subscription. It records the log
    cursor when it starts, then checks the log at a fixed poll interval
    until the time budget is spent or enough new messages have arrived. Each
    poll step sleeps, so other connections and calls keep running while a
    listen waits. The log is never modified by a read.
    """

    def __init__(self, registry: ConnectionRegistry, poll_interval: float | None = None) -> None:
        self._registry = registry
        self._poll_interval = (
            poll_interval if poll_interval is not None else registry.settings.listen_poll_interval_seconds
        )

    async def listen(
        self,
        connection_id: str,
        budget_seconds: float | None = None,
        max_new_messages: int | None = None,
    ) -> ListenResult:
        """Wait for new inbound messages and return them.

        The id is looked up only once, at the start. If the connection is
        closed or removed while waiting, the call still finishes normally
        with whatever arrived. Running out of time is not an error: a listen
        that sees no traffic returns an empty message list.

        Raises ConnectionNotFoundError if the id is unknown at call start.
        """
        settings = self._registry.settings
        budget = budget_seconds if budget_seconds is not None else settings.listen_default_seconds
        limit = max_new_messages if max_new_messages is not None else settings.listen_default_max_messages
        if budget < 0:
            raise ValueError(f"budget_seconds must not be negative, got {budget}")
        if limit < 1:
            raise ValueError(f"max_new_messages must be at least 1, got {limit}")

        log = self._registry.get(connection_id).log
        cursor = log.cursor
        start = time.monotonic()

        while True:
            elapsed = time.monotonic() - start
            if elapsed >= budget or log.count_since(cursor) >= limit:
                break
            await asyncio.sleep(min(self._poll_interval, budget - elapsed))

        messages = log.since(cursor)
        missed = log.count_since(cursor) - len(messages)
        if missed:
            logger.warning("listen missed trimmed messages", connection_id=connection_id, missed=missed)
        return ListenResult(
            connection_id=connection_id,
            messages=messages,
            elapsed_seconds=elapsed,
            missed=missed,
        )
