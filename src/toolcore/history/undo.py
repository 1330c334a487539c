"""Bounded LIFO of pre-change file snapshots."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass

MAX_UNDO_ENTRIES = 50


@dataclass(slots=True, frozen=True)
class UndoEntry:
    """Content of a file right before a tool changed it.

    ``content`` is None when the file did not exist, so undoing the change
    removes it again.
    """

    path: str
    content: str | None
    timestamp: float


class UndoStack:
    """Keeps the most recent snapshots; the oldest is evicted first."""

    def __init__(self, max_entries: int = MAX_UNDO_ENTRIES) -> None:
        self._entries: deque[UndoEntry] = deque(maxlen=max_entries)

    def push(self, path: str, content: str | None) -> UndoEntry:
        entry = UndoEntry(path=path, content=content, timestamp=time.time())
        self._entries.append(entry)
        return entry

    def pop(self) -> UndoEntry | None:
        if not self._entries:
            return None
        return self._entries.pop()

    def peek(self) -> UndoEntry | None:
        if not self._entries:
            return None
        return self._entries[-1]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
