"""Memo of analysis results keyed by file path and content hash."""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

MAX_MEMO_ENTRIES = 500


def content_hash(content: str) -> str:
    return hashlib.sha1(content.encode("utf-8", "surrogateescape")).hexdigest()


class AnalysisCache:
    """Results stay valid while the analyzed content is unchanged."""

    def __init__(self, max_entries: int = MAX_MEMO_ENTRIES) -> None:
        self._entries: dict[tuple[str, str, str], object] = {}
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self, kind: str, path: str, content: str, compute: Callable[[], T]
    ) -> T:
        key = (kind, path, content_hash(content))
        with self._lock:
            if key in self._entries:
                self.hits += 1
                return self._entries[key]  # type: ignore[return-value]
            self.misses += 1
        value = compute()
        self._store(key, value)
        return value

    async def get_or_await(
        self, kind: str, path: str, content: str, compute: Callable[[], Awaitable[T]]
    ) -> T:
        """Like get_or_compute for coroutine producers such as worker jobs."""
        key = (kind, path, content_hash(content))
        with self._lock:
            if key in self._entries:
                self.hits += 1
                return self._entries[key]  # type: ignore[return-value]
            self.misses += 1
        value = await compute()
        self._store(key, value)
        return value

    def _store(self, key: tuple[str, str, str], value: object) -> None:
        with self._lock:
            if len(self._entries) >= self._max_entries:
                self._entries.pop(next(iter(self._entries)))
            self._entries[key] = value

    def invalidate(self, path: str) -> int:
        """Drop every memoized result for ``path``; returns the number removed."""
        with self._lock:
            doomed = [key for key in self._entries if key[1] == path]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
