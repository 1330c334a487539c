"""Sandboxing and path safety primitives."""

from .paths import PathBlockedError, resolve_workspace_path, to_workspace_relative
from .policy import (
    PolicyBlockedError,
    SecurityLimits,
    enforce_file_access_policy,
    enforce_open_line_limits,
    is_denylisted,
    probe_write_permission,
)

__all__ = [
    "PathBlockedError",
    "PolicyBlockedError",
    "SecurityLimits",
    "enforce_file_access_policy",
    "enforce_open_line_limits",
    "is_denylisted",
    "probe_write_permission",
    "resolve_workspace_path",
    "to_workspace_relative",
]
