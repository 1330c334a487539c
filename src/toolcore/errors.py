"""Typed tool failures surfaced through the dispatcher error envelope."""

from __future__ import annotations


class ToolError(Exception):
    """Base class for failures a tool handler reports to the model."""

    kind = "InternalError"

    def __init__(
        self,
        message: str,
        hint: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}


class BadRequest(ToolError):
    """Arguments are missing, malformed, or inconsistent."""

    kind = "BadRequest"


class NotFound(ToolError):
    """Referenced file, folder, task, or index does not exist."""

    kind = "NotFound"


class PermissionDenied(ToolError):
    """Sandbox, denylist, or filesystem permission refused the operation."""

    kind = "PermissionDenied"


class Conflict(ToolError):
    """Current file content disagrees with what the caller expected."""

    kind = "Conflict"


class Unsupported(ToolError):
    """Operation is not available for this file type or mode."""

    kind = "Unsupported"


class ToolTimeout(ToolError):
    """Handler or worker job exceeded its time budget."""

    kind = "Timeout"


class WorkerFailure(ToolError):
    """Worker pool could not run the job."""

    kind = "WorkerFailure"


class Degraded(ToolError):
    """Operation finished with partial results."""

    kind = "Degraded"


class QualityCompromised(ToolError):
    """Too many research sources failed for the result to be trusted."""

    kind = "QualityCompromised"


class Transient(ToolError):
    """Upstream failure that may succeed on retry."""

    kind = "Transient"


__all__ = [
    "BadRequest",
    "Conflict",
    "Degraded",
    "NotFound",
    "PermissionDenied",
    "QualityCompromised",
    "ToolError",
    "ToolTimeout",
    "Transient",
    "Unsupported",
    "WorkerFailure",
]
