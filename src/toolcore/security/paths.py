"""Workspace-scoped path resolution."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

WINDOWS_DRIVE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


class PathBlockedError(Exception):
    """Raised when a requested path would leave the workspace sandbox."""

    def __init__(self, reason: str, hint: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


def _split_candidate(candidate: str) -> tuple[str, bool]:
    """Normalize separators and report whether the input looks absolute."""
    normalized = candidate.strip().replace("\\", "/")
    if normalized.startswith("/") or WINDOWS_DRIVE_PATTERN.match(normalized):
        return normalized, True
    return normalized, False


def resolve_workspace_path(workspace_root: Path, candidate: str) -> Path:
    """Resolve a workspace-relative path, refusing anything that escapes the root."""
    root = workspace_root.resolve()
    normalized, absolute = _split_candidate(candidate)

    if not normalized:
        raise PathBlockedError(
            reason="Path is empty.",
            hint="Provide a workspace-relative path such as 'src/app.js'.",
        )
    if absolute:
        raise PathBlockedError(
            reason="Absolute paths are not accepted.",
            hint="Use a path relative to the workspace root.",
        )

    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    if any(part == ".." for part in parts):
        raise PathBlockedError(
            reason="Path traversal is blocked.",
            hint="Remove '..' segments and use a workspace-relative path.",
        )
    if not parts:
        return root

    # Models often prefix paths with the project folder name.
    if parts[0] == root.name and not (root / parts[0]).exists():
        raise PathBlockedError(
            reason=f"Path must not start with the workspace folder name '{root.name}'.",
            hint=f"Drop the leading '{root.name}/' segment.",
        )

    resolved = (root / Path(*parts)).resolve(strict=False)
    if not resolved.is_relative_to(root):
        raise PathBlockedError(
            reason="Resolved path escapes the workspace root.",
            hint="Use a path located under the workspace root.",
        )
    return resolved


def to_workspace_relative(workspace_root: Path, resolved: Path) -> str:
    """Return the forward-slash relative form of a resolved workspace path."""
    rel = resolved.relative_to(workspace_root.resolve()).as_posix()
    return "" if rel == "." else rel
