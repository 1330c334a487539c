"""Denylist and size limits applied to workspace file access."""

from __future__ import annotations

import fnmatch
import os
from dataclasses import dataclass
from pathlib import Path

_SENSITIVE_BASENAME_GLOBS = ("*.pem", "*.key", "*.pfx", "*.p12", "id_rsa*", "secrets.*")


@dataclass(slots=True, frozen=True)
class SecurityLimits:
    """Size limits applied to reads, edits, and searches."""

    max_file_bytes: int = 16 * 1024 * 1024
    max_read_bytes: int = 256_000
    max_open_lines: int = 2_000
    max_search_hits: int = 200


@dataclass(slots=True, frozen=True)
class PolicyBlockedError(Exception):
    """Raised when the denylist or a limit refuses an operation."""

    reason: str
    hint: str


def is_denylisted(workspace_root: Path, resolved_path: Path) -> bool:
    """Return True for secrets and VCS internals that tools never touch."""
    rel_path = resolved_path.relative_to(workspace_root.resolve()).as_posix()
    lowered = rel_path.lower()
    basename = Path(rel_path).name.lower()

    if basename == ".env":
        return True
    if any(fnmatch.fnmatch(basename, pattern) for pattern in _SENSITIVE_BASENAME_GLOBS):
        return True
    return "/.git/" in f"/{lowered}/"


def enforce_file_access_policy(
    workspace_root: Path,
    resolved_path: Path,
    limits: SecurityLimits,
) -> None:
    """Raise PolicyBlockedError when the path or its size violates policy."""
    if is_denylisted(workspace_root=workspace_root, resolved_path=resolved_path):
        raise PolicyBlockedError(
            reason="File is denylisted by security policy.",
            hint="Secrets, keys and .git internals cannot be accessed by tools.",
        )
    if resolved_path.is_file() and resolved_path.stat().st_size > limits.max_file_bytes:
        raise PolicyBlockedError(
            reason="File exceeds max_file_bytes limit.",
            hint="Work on a smaller file or raise the limit in toolcore.toml.",
        )


def enforce_open_line_limits(start_line: int, end_line: int, limits: SecurityLimits) -> None:
    """Raise PolicyBlockedError when a requested line span is too large."""
    if end_line - start_line + 1 > limits.max_open_lines:
        raise PolicyBlockedError(
            reason="Requested line range exceeds max_open_lines limit.",
            hint="Reduce the requested line range.",
        )


def probe_write_permission(resolved_path: Path) -> str | None:
    """Return a denial message when the target (or its nearest parent) is not writable."""
    target = resolved_path
    while not target.exists():
        parent = target.parent
        if parent == target:
            break
        target = parent
    if not os.access(target, os.W_OK):
        return f"Write permission denied for '{resolved_path.name}'. User activation is required."
    return None
