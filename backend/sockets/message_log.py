"""Bounded, ordered buffer of inbound events for a single connection."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sockets.types import LogEntry

DEFAULT_LOG_CAPACITY = 1000
_MIN_CAPACITY = 2


class MessageLog:
    """Append-only event log with lossy, newest-biased trimming.

    When an append finds the log full, the oldest half of the entries is
    discarded before the new entry is stored, so a full log of 1000 entries
    holds 501 after the next append.

    Readers take a cursor (the total number of entries ever appended) and
    later ask for everything appended since. The cursor keeps counting
    across trims, so a delta read returns only the entries that arrived
    after the cursor, minus any that were trimmed in the meantime.
    """

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY) -> None:
        if capacity < _MIN_CAPACITY:
            raise ValueError(f"capacity must be at least {_MIN_CAPACITY}, got {capacity}")
        self._capacity = capacity
        self._entries: list[LogEntry] = []
        self._appended = 0
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def cursor(self) -> int:
        """Total number of entries ever appended."""
        return self._appended

    @property
    def dropped(self) -> int:
        """Total number of entries discarded by trimming."""
        return self._dropped

    def append(self, entry: LogEntry) -> None:
        if len(self._entries) >= self._capacity:
            trim = self._capacity // 2
            del self._entries[:trim]
            self._dropped += trim
        self._entries.append(entry)
        self._appended += 1

    def count_since(self, cursor: int) -> int:
        """Number of entries appended after cursor, including trimmed ones."""
        return max(self._appended - cursor, 0)

    def since(self, cursor: int) -> list[LogEntry]:
        """Return the surviving entries appended at or after cursor."""
        first_retained = self._appended - len(self._entries)
        start = max(cursor - first_retained, 0)
        return self._entries[start:]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
