"""Structured JSONL log of tool executions."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

_VERBATIM_STRING_KEYS = {
    "filename",
    "path",
    "folder_path",
    "old_path",
    "new_path",
    "old_folder_path",
    "new_folder_path",
    "mode",
    "task_id",
    "status",
    "priority",
}
_CONTENT_KEYS = {"content", "diff", "new_content", "expected_content", "query", "search_term"}


@dataclass(slots=True, frozen=True)
class ToolLogEntry:
    """Sanitized record of one tool call."""

    timestamp: str
    request_id: str
    tool: str
    status: str
    elapsed_ms: int
    error_kind: str | None
    cached: bool
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_arguments(arguments: dict[str, object]) -> dict[str, object]:
    """Reduce tool arguments to loggable metadata without file bodies."""
    sanitized: dict[str, object] = {}
    for key in sorted(arguments.keys()):
        value = arguments[key]
        if key in _VERBATIM_STRING_KEYS and isinstance(value, str):
            sanitized[key] = value
        elif key in _CONTENT_KEYS and isinstance(value, str):
            sanitized[f"{key}_present"] = True
            sanitized[f"{key}_length"] = len(value)
        elif isinstance(value, (int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, str):
            sanitized[f"{key}_length"] = len(value)
        elif isinstance(value, list):
            sanitized[f"{key}_type"] = "list"
            sanitized[f"{key}_length"] = len(value)
        elif isinstance(value, dict):
            sanitized[f"{key}_type"] = "dict"
            sanitized[f"{key}_keys"] = sorted(str(k) for k in value.keys())
        else:
            sanitized[f"{key}_type"] = type(value).__name__
    return sanitized


class JsonlToolLogger:
    """Append-only JSONL tool log with a bounded reader."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: ToolLogEntry) -> None:
        """Append one entry as a single JSON line."""
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(entry), sort_keys=True))
            handle.write("\n")

    def read(self, since: str | None = None, limit: int = 100) -> list[dict[str, object]]:
        """Return the newest entries, optionally bounded below by timestamp."""
        if limit < 1 or not self._path.exists():
            return []
        entries: list[dict[str, object]] = []
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                if since is not None:
                    ts = record.get("timestamp")
                    if not isinstance(ts, str) or ts < since:
                        continue
                entries.append(record)
        return entries[-limit:]

    def clear(self) -> None:
        """Drop all persisted entries."""
        self._path.write_text("", encoding="utf-8")
