"""Process-wide result cache for read-only tools."""

from __future__ import annotations

import json
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

# Arguments that name workspace paths.
PATH_ARGUMENTS = (
    "filename",
    "filenames",
    "path",
    "paths",
    "folder_path",
    "old_path",
    "new_path",
    "old_folder_path",
    "new_folder_path",
)
# Results that depend on the whole workspace rather than named paths.
WORKSPACE_WIDE_TOOLS = frozenset({"get_project_structure", "search_code"})


@dataclass(slots=True)
class _CacheEntry:
    tool: str
    paths: tuple[str, ...]
    payload: dict[str, object]
    stored_at: float


def cache_key(tool: str, arguments: Mapping[str, object]) -> str:
    """Key of the form ``"{tool}:{canonical JSON arguments}"``."""
    return f"{tool}:{json.dumps(arguments, sort_keys=True, separators=(',', ':'), default=str)}"


def argument_paths(arguments: Mapping[str, object]) -> tuple[str, ...]:
    """Normalized workspace paths referenced by a call's arguments."""
    found: list[str] = []
    for name in PATH_ARGUMENTS:
        value = arguments.get(name)
        values: Iterable[object] = value if isinstance(value, list) else (value,)
        for item in values:
            if isinstance(item, str) and item.strip():
                found.append(normalize_path(item))
    edits = arguments.get("edits")
    if isinstance(edits, list):
        for edit in edits:
            if isinstance(edit, dict) and isinstance(edit.get("filename"), str):
                found.append(normalize_path(edit["filename"]))
    return tuple(dict.fromkeys(found))


def normalize_path(path: str) -> str:
    cleaned = path.replace("\\", "/").strip()
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return cleaned.strip("/")


def paths_overlap(left: str, right: str) -> bool:
    """Same path, or one is a folder containing the other."""
    if left == right or not left or not right:
        return True
    return left.startswith(f"{right}/") or right.startswith(f"{left}/")


class ResultCache:
    """TTL cache bounded by entry count with FIFO eviction."""

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _CacheEntry] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, tool: str, arguments: Mapping[str, object]) -> dict[str, object] | None:
        key = cache_key(tool, arguments)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        if self._clock() - entry.stored_at > self._ttl_seconds:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return entry.payload

    def put(self, tool: str, arguments: Mapping[str, object], payload: dict[str, object]) -> None:
        key = cache_key(tool, arguments)
        self._entries.pop(key, None)
        self._entries[key] = _CacheEntry(
            tool=tool,
            paths=argument_paths(arguments),
            payload=payload,
            stored_at=self._clock(),
        )
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def invalidate_paths(self, paths: Iterable[str]) -> int:
        """Drop entries touching any of ``paths`` plus workspace-wide entries."""
        touched = [normalize_path(path) for path in paths]
        if not touched:
            return self.clear()
        stale = [
            key
            for key, entry in self._entries.items()
            if entry.tool in WORKSPACE_WIDE_TOOLS
            or any(paths_overlap(cached, path) for cached in entry.paths for path in touched)
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}

    def __len__(self) -> int:
        return len(self._entries)
