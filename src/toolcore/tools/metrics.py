"""Tool call events and the sinks that consume them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from toolcore.logging import JsonlToolLogger, ToolLogEntry, get_logger, sanitize_arguments

SLOW_CALL_MS = 5000

logger = get_logger("metrics")


@dataclass(slots=True, frozen=True)
class ToolCallEvent:
    """Outcome of one dispatched call."""

    tool: str
    request_id: str
    status: str
    elapsed_ms: int
    cached: bool = False
    error_kind: str | None = None
    file_type: str | None = None
    arguments: dict[str, object] = field(default_factory=dict)
    timestamp: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == "Success"


class MetricsSink(Protocol):
    """Receives one event per dispatched call."""

    def record(self, event: ToolCallEvent) -> None:
        """Consume an event; must not raise for ordinary events."""


@dataclass(slots=True)
class ToolStats:
    """Rolling counters for one tool and file type."""

    total_calls: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_ms: int = 0
    last_used: str = ""

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.total_calls if self.total_calls else 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "total_calls": self.total_calls,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "average_ms": round(self.average_ms, 2),
            "last_used": self.last_used,
        }


class ToolMetrics:
    """In-memory rolling statistics keyed by tool and by tool plus file type."""

    def __init__(self, slow_call_ms: int = SLOW_CALL_MS) -> None:
        self._slow_call_ms = slow_call_ms
        self._by_tool: dict[str, ToolStats] = {}
        self._by_file_type: dict[tuple[str, str], ToolStats] = {}

    def record(self, event: ToolCallEvent) -> None:
        keys: list[ToolStats] = [self._by_tool.setdefault(event.tool, ToolStats())]
        keys.append(
            self._by_file_type.setdefault((event.tool, event.file_type or "unknown"), ToolStats())
        )
        for stats in keys:
            stats.total_calls += 1
            stats.total_ms += event.elapsed_ms
            stats.last_used = event.timestamp
            if event.succeeded:
                stats.success_count += 1
            else:
                stats.failure_count += 1
        if event.elapsed_ms > self._slow_call_ms:
            logger.warning("Tool {} took {}ms to execute", event.tool, event.elapsed_ms)

    def for_tool(self, tool: str) -> ToolStats | None:
        return self._by_tool.get(tool)

    def for_file_type(self, tool: str, file_type: str | None) -> ToolStats | None:
        return self._by_file_type.get((tool, file_type or "unknown"))

    def snapshot(self) -> dict[str, dict[str, object]]:
        return {name: stats.to_dict() for name, stats in sorted(self._by_tool.items())}

    def reset(self) -> None:
        self._by_tool.clear()
        self._by_file_type.clear()


class ToolLogSink:
    """Persists events to the JSONL tool log with sanitized arguments."""

    def __init__(self, tool_logger: JsonlToolLogger) -> None:
        self._tool_logger = tool_logger

    def record(self, event: ToolCallEvent) -> None:
        self._tool_logger.append(
            ToolLogEntry(
                timestamp=event.timestamp,
                request_id=event.request_id,
                tool=event.tool,
                status=event.status,
                elapsed_ms=event.elapsed_ms,
                error_kind=event.error_kind,
                cached=event.cached,
                metadata=sanitize_arguments(event.arguments),
            )
        )
