"""Regex-based definition extraction keyed by file extension."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from toolcore.index.models import Definition

_GENERIC_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("function", re.compile(r"(?:function|def|func|fn)\s+([a-zA-Z0-9_<>]+)\s*\(?")),
    ("class", re.compile(r"class\s+([a-zA-Z0-9_<>]+)")),
    ("variable", re.compile(r"(?:const|let|var|val|final)\s+([a-zA-Z0-9_]+)\s*=")),
)
_TODO_PATTERN = re.compile(r"(?://|#|\*)\s*TODO[:\s](.*)")
_ARROW_FUNCTION = re.compile(r"(?:const|let)\s+([a-zA-Z0-9_]+)\s*=\s*(?:async)?\s*\(.*?\)\s*=>")
_PYTHON_METHOD = re.compile(r"def\s+([a-zA-Z0-9_]+)\(self")

_JS_FAMILY = frozenset({".js", ".jsx", ".ts", ".tsx"})


def extract_definitions(path: str, content: str) -> tuple[Definition, ...]:
    """Return unique definitions in order of first appearance, plus the file itself."""
    suffix = PurePosixPath(path).suffix.lower()
    patterns = list(_GENERIC_PATTERNS)
    if suffix in _JS_FAMILY:
        patterns.append(("function", _ARROW_FUNCTION))
    if suffix == ".py":
        patterns.append(("method", _PYTHON_METHOD))

    found: list[Definition] = []
    seen: set[tuple[str, str | None, str | None]] = set()

    def add(definition: Definition) -> None:
        key = (definition.type, definition.name, definition.content)
        if key not in seen:
            seen.add(key)
            found.append(definition)

    for number, line in enumerate(content.splitlines(), start=1):
        for kind, pattern in patterns:
            for match in pattern.finditer(line):
                add(Definition(type=kind, name=match.group(1), line=number))
        todo = _TODO_PATTERN.search(line)
        if todo is not None:
            add(Definition(type="todo", content=todo.group(1).strip(), line=number))

    add(Definition(type="file", name=PurePosixPath(path).name))
    return tuple(found)
