"""Typed models for indexing state."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Definition:
    """A named construct (or TODO note) found in a file."""

    type: str
    name: str | None = None
    content: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"type": self.type}
        if self.name is not None:
            payload["name"] = self.name
        if self.content is not None:
            payload["content"] = self.content
        if self.line is not None:
            payload["line"] = self.line
        return payload


@dataclass(slots=True, frozen=True)
class FileRecord:
    """One indexed file; mtime is integer milliseconds."""

    path: str
    mtime: int
    size: int
    content: str
    definitions: tuple[Definition, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "mtime": self.mtime,
            "size": self.size,
            "content": self.content,
            "definitions": [definition.to_dict() for definition in self.definitions],
        }


@dataclass(slots=True, frozen=True)
class IndexStats:
    """Counts from one indexing pass."""

    indexed: int
    skipped: int
    deleted: int


@dataclass(slots=True, frozen=True)
class IndexStatus:
    """Current index status snapshot."""

    index_status: str
    last_index_timestamp: int | None
    indexed_file_count: int
