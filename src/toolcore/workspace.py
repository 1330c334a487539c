"""Sandboxed view over the user-granted workspace directory."""

from __future__ import annotations

import fnmatch
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from toolcore.errors import NotFound, PermissionDenied
from toolcore.security import (
    PathBlockedError,
    PolicyBlockedError,
    SecurityLimits,
    enforce_file_access_policy,
    probe_write_permission,
    resolve_workspace_path,
    to_workspace_relative,
)

IGNORE_FILE_NAME = ".ai_ignore"
_TEXT_ENCODING = "utf-8"
# Undecodable bytes survive a read/write cycle unchanged.
_TEXT_ERRORS = "surrogateescape"


@dataclass(slots=True, frozen=True)
class TreeNode:
    """One entry of the rendered project structure."""

    name: str
    kind: str
    children: tuple[TreeNode, ...] = ()


def load_ignore_file(root: Path) -> tuple[str, ...]:
    """Read non-comment patterns from the workspace ignore file."""
    path = root / IGNORE_FILE_NAME
    if not path.is_file():
        return ()
    patterns: list[str] = []
    for raw_line in path.read_text(encoding=_TEXT_ENCODING, errors="replace").splitlines():
        line = raw_line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return tuple(patterns)


def matches_ignore_pattern(relative_path: str, patterns: tuple[str, ...]) -> bool:
    """Return True when a relative path falls under any ignore pattern.

    A pattern is a path prefix (trailing slash optional) matched at segment
    boundaries. Bare names such as ``node_modules`` also match any nested
    segment, and glob characters are honoured through fnmatch.
    """
    segments = relative_path.split("/")
    for raw in patterns:
        pattern = raw.strip().rstrip("/")
        if not pattern:
            continue
        if relative_path == pattern or relative_path.startswith(f"{pattern}/"):
            return True
        if "/" not in pattern:
            if any(fnmatch.fnmatch(segment, pattern) for segment in segments):
                return True
        elif fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
            relative_path, f"{pattern}/*"
        ):
            return True
    return False


class Workspace:
    """Root directory plus ignore rules and limits, with safe file primitives."""

    def __init__(
        self,
        root: Path,
        ignore_patterns: tuple[str, ...] = (),
        limits: SecurityLimits | None = None,
    ) -> None:
        self._root = root.resolve()
        self._limits = limits or SecurityLimits()
        self._ignore_patterns = tuple(ignore_patterns) + load_ignore_file(self._root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def name(self) -> str:
        return self._root.name

    @property
    def limits(self) -> SecurityLimits:
        return self._limits

    @property
    def ignore_patterns(self) -> tuple[str, ...]:
        return self._ignore_patterns

    def resolve(self, candidate: str) -> Path:
        """Resolve a relative tool path, mapping sandbox violations to PermissionDenied."""
        try:
            resolved = resolve_workspace_path(self._root, candidate)
        except PathBlockedError as error:
            raise PermissionDenied(error.reason, hint=error.hint) from error
        if resolved != self._root:
            try:
                enforce_file_access_policy(self._root, resolved, self._limits)
            except PolicyBlockedError as error:
                raise PermissionDenied(error.reason, hint=error.hint) from error
        return resolved

    def relative(self, resolved: Path) -> str:
        return to_workspace_relative(self._root, resolved)

    def is_ignored(self, relative_path: str) -> bool:
        return matches_ignore_pattern(relative_path, self._ignore_patterns)

    def resolve_existing_file(self, candidate: str) -> Path:
        resolved = self.resolve(candidate)
        if not resolved.is_file():
            raise NotFound(
                f"File '{candidate}' does not exist.",
                hint="Use get_project_structure to verify file paths.",
            )
        return resolved

    def resolve_existing_folder(self, candidate: str) -> Path:
        resolved = self.resolve(candidate)
        if not resolved.is_dir():
            raise NotFound(
                f"Folder '{candidate}' does not exist.",
                hint="Use get_project_structure to verify folder paths.",
            )
        return resolved

    def ensure_writable(self, resolved: Path) -> None:
        """Raise PermissionDenied when the write permission probe fails."""
        denial = probe_write_permission(resolved)
        if denial is not None:
            raise PermissionDenied(denial, hint="Ask the user to grant write access, then retry.")

    def read_text(self, resolved: Path) -> str:
        """Read file text without newline translation."""
        with resolved.open(
            "r", encoding=_TEXT_ENCODING, errors=_TEXT_ERRORS, newline=""
        ) as handle:
            return handle.read()

    def read_text_or_none(self, resolved: Path) -> str | None:
        if not resolved.exists():
            return None
        return self.read_text(resolved)

    @contextmanager
    def atomic_writer(self, resolved: Path) -> Iterator[TextIO]:
        """Yield a text handle whose content replaces the target on clean exit."""
        resolved.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{resolved.name}.", suffix=".tmp", dir=resolved.parent
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(
                fd, "w", encoding=_TEXT_ENCODING, errors=_TEXT_ERRORS, newline=""
            ) as handle:
                yield handle
            if resolved.exists():
                os.chmod(tmp_path, resolved.stat().st_mode & 0o7777)
            tmp_path.replace(resolved)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def write_text(self, resolved: Path, content: str) -> None:
        """Write text atomically through a sibling temp file."""
        with self.atomic_writer(resolved) as handle:
            handle.write(content)

    def structure(self) -> tuple[TreeNode, ...]:
        """Return the directory tree, skipping ignored entries."""
        return self._walk(self._root)

    def _walk(self, directory: Path) -> tuple[TreeNode, ...]:
        try:
            with os.scandir(directory) as entries:
                ordered = sorted(entries, key=lambda item: (not item.is_dir(), item.name.lower()))
        except OSError:
            return ()
        nodes: list[TreeNode] = []
        for entry in ordered:
            relative = Path(entry.path).relative_to(self._root).as_posix()
            if self.is_ignored(relative):
                continue
            if entry.is_dir(follow_symlinks=False):
                nodes.append(TreeNode(entry.name, "folder", self._walk(Path(entry.path))))
            elif entry.is_file(follow_symlinks=False):
                nodes.append(TreeNode(entry.name, "file"))
        return tuple(nodes)


def format_tree(nodes: tuple[TreeNode, ...]) -> str:
    """Render a tree with box-drawing connectors."""
    if not nodes:
        return "Project directory is empty."
    lines: list[str] = []
    _format_level(nodes, "", lines)
    return "\n".join(lines)


def _format_level(nodes: tuple[TreeNode, ...], indent: str, lines: list[str]) -> None:
    for position, node in enumerate(nodes):
        last = position == len(nodes) - 1
        suffix = "/" if node.kind == "folder" else ""
        lines.append(f"{indent}{'└── ' if last else '├── '}{node.name}{suffix}")
        if node.children:
            _format_level(node.children, indent + ("    " if last else "│   "), lines)
