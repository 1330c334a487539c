"""Line and fence helpers shared by the edit operations."""

from __future__ import annotations

import re

CRLF = "\r\n"
LF = "\n"

_FENCED_BLOCK = re.compile(r"^```(?:[\w+#.-]+)?\n([\s\S]+)\n```$")


def strip_markdown_fence(content: str) -> str:
    """Return the inner text when the whole content is one fenced code block."""
    match = _FENCED_BLOCK.match(content.strip().replace(CRLF, LF))
    if match is None:
        return content
    return match.group(1)


def detect_line_ending(content: str) -> str:
    """CRLF if the text contains any CRLF, else LF."""
    return CRLF if CRLF in content else LF


def split_lines(content: str) -> list[str]:
    """Split on line breaks; a trailing newline yields a final empty line."""
    return content.replace(CRLF, LF).split(LF)


def join_lines(lines: list[str], line_ending: str = LF) -> str:
    return line_ending.join(lines)


def content_lines(text: str) -> list[str]:
    """Lines of model-supplied replacement text; empty text means no lines."""
    if text == "":
        return []
    return split_lines(text)
