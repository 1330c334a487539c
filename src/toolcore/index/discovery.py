"""Deterministic workspace walk for indexable text files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from toolcore.workspace import matches_ignore_pattern

_BINARY_SNIFF_BYTES = 4096


@dataclass(slots=True, frozen=True)
class CandidateFile:
    """A file observed during the walk."""

    relative_path: str
    full_path: Path
    size: int
    mtime: int


def discover_files(
    root: Path,
    include_extensions: tuple[str, ...],
    ignore_patterns: tuple[str, ...],
) -> list[CandidateFile]:
    """Walk the tree with an explicit stack, pruning ignored directories."""
    root = root.resolve()
    include = {extension.lower() for extension in include_extensions}
    candidates: list[CandidateFile] = []
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError:
            continue
        for entry in reversed(ordered_entries):
            full_path = Path(entry.path)
            relative = full_path.relative_to(root).as_posix()
            if matches_ignore_pattern(relative, ignore_patterns):
                continue
            if entry.is_dir(follow_symlinks=False):
                stack.append(full_path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if full_path.suffix.lower() not in include:
                continue
            try:
                stat = entry.stat(follow_symlinks=False)
            except OSError:
                continue
            candidates.append(
                CandidateFile(
                    relative_path=relative,
                    full_path=full_path,
                    size=stat.st_size,
                    mtime=stat.st_mtime_ns // 1_000_000,
                )
            )
    candidates.sort(key=lambda item: item.relative_path)
    return candidates


def is_binary_file(path: Path) -> bool:
    """Sniff the head of a file for NUL bytes or invalid UTF-8."""
    with path.open("rb") as handle:
        sample = handle.read(_BINARY_SNIFF_BYTES)
    if b"\x00" in sample:
        return True
    try:
        sample.decode("utf-8")
    except UnicodeDecodeError as error:
        # A multi-byte sequence cut at the sniff boundary is still text.
        return error.start < len(sample) - 3
    return False
