"""SEARCH/REPLACE diff parsing and fuzzy block application."""

from __future__ import annotations

import re
from dataclasses import dataclass

from toolcore.edit.text import content_lines, split_lines
from toolcore.errors import BadRequest, Conflict

SEARCH_MARKER = "<<<<<<< SEARCH"
START_LINE_PATTERN = re.compile(r"^:start_line:\s*(\d+)\s*$")
SEARCH_SEPARATOR = "-------"
REPLACE_SEPARATOR = "======="
REPLACE_MARKER = ">>>>>>> REPLACE"

TRIM_WINDOW = 10
BOUNDARY_WINDOW = 5
CONTEXT_LINES = 3

EXPECTED_FORMAT = "\n".join(
    [
        SEARCH_MARKER,
        ":start_line:<line number>",
        SEARCH_SEPARATOR,
        "<exact lines to find>",
        REPLACE_SEPARATOR,
        "<replacement lines>",
        REPLACE_MARKER,
    ]
)


@dataclass(slots=True, frozen=True)
class DiffBlock:
    """One SEARCH/REPLACE hunk anchored at a 1-based start line."""

    start_line: int
    search_content: str
    replace_content: str


@dataclass(slots=True, frozen=True)
class BlockOutcome:
    """Where and how a block matched."""

    start_line: int
    matched_line: int
    strategy: str


class _MalformedBlock(Exception):
    pass


def parse_diff(diff: str) -> list[DiffBlock]:
    """Parse every hunk; any malformed hunk rejects the whole diff."""
    normalized = diff.replace("\r\n", "\n")
    pieces = [piece for piece in normalized.split(SEARCH_MARKER)[1:] if piece.strip()]
    blocks: list[DiffBlock] = []
    try:
        for piece in pieces:
            blocks.append(_parse_block(piece))
    except _MalformedBlock:
        blocks = []
    if not blocks:
        raise BadRequest(
            _debug_message(normalized),
            hint="Read the file with include_line_numbers=true and rebuild the diff.",
        )
    return blocks


def _parse_block(piece: str) -> DiffBlock:
    lines = piece.split("\n")
    # Remainder of the SEARCH marker line.
    if lines and not lines[0].strip():
        lines = lines[1:]
    if not lines:
        raise _MalformedBlock
    match = START_LINE_PATTERN.match(lines[0].strip())
    if match is None or len(lines) < 2 or lines[1].strip() != SEARCH_SEPARATOR:
        raise _MalformedBlock

    cursor = 2
    search: list[str] = []
    while cursor < len(lines) and lines[cursor].rstrip() != REPLACE_SEPARATOR:
        search.append(lines[cursor])
        cursor += 1
    if cursor >= len(lines):
        raise _MalformedBlock
    cursor += 1
    replace: list[str] = []
    while cursor < len(lines) and not lines[cursor].startswith(REPLACE_MARKER):
        replace.append(lines[cursor])
        cursor += 1
    if cursor >= len(lines):
        raise _MalformedBlock
    return DiffBlock(
        start_line=int(match.group(1)),
        search_content="\n".join(search),
        replace_content="\n".join(replace),
    )


def _debug_message(diff: str) -> str:
    def found(flag: bool) -> str:
        return "found" if flag else "missing"

    has_start = any(START_LINE_PATTERN.match(line.strip()) for line in diff.split("\n"))
    return "\n".join(
        [
            "No valid diff blocks found. Debug info:",
            f"- '{SEARCH_MARKER}' marker: {found(SEARCH_MARKER in diff)}",
            f"- ':start_line:N' line: {found(has_start)}",
            f"- '{SEARCH_SEPARATOR}' separator: {found(SEARCH_SEPARATOR in diff)}",
            f"- '{REPLACE_SEPARATOR}' separator: {found(REPLACE_SEPARATOR in diff)}",
            f"- '{REPLACE_MARKER}' marker: {found(REPLACE_MARKER in diff)}",
            "",
            "Expected format:",
            EXPECTED_FORMAT,
            "",
            "Received diff:",
            diff[:2000],
        ]
    )


def apply_diff_blocks(
    lines: list[str], blocks: list[DiffBlock]
) -> tuple[list[str], list[BlockOutcome]]:
    """Apply hunks bottom-up so earlier hunks keep their line numbers."""
    result = list(lines)
    outcomes: list[BlockOutcome] = []
    for block in sorted(blocks, key=lambda item: item.start_line, reverse=True):
        if block.start_line < 1 or block.start_line > len(result):
            raise BadRequest(
                f"Invalid start_line {block.start_line}. File has {len(result)} lines.",
                hint="Use read_file with include_line_numbers=true to get accurate line numbers.",
            )
        search = content_lines(block.search_content)
        position, strategy = _locate(result, search, block.start_line - 1)
        if position is None:
            raise _mismatch(result, search, block.start_line - 1)
        result[position : position + len(search)] = content_lines(block.replace_content)
        outcomes.append(
            BlockOutcome(
                start_line=block.start_line,
                matched_line=position + 1,
                strategy=strategy,
            )
        )
    outcomes.reverse()
    return result, outcomes


def _locate(lines: list[str], search: list[str], index: int) -> tuple[int | None, str]:
    count = len(search)
    if lines[index : index + count] == search:
        return index, "exact"

    stripped = [line.strip() for line in search]
    last_start = len(lines) - count
    for candidate in range(max(0, index - TRIM_WINDOW), min(last_start, index + TRIM_WINDOW) + 1):
        window = lines[candidate : candidate + count]
        if [line.strip() for line in window] == stripped:
            return candidate, "trim"

    if count > 2:
        first, last = stripped[0], stripped[-1]
        for candidate in range(
            max(0, index - BOUNDARY_WINDOW), min(last_start, index + BOUNDARY_WINDOW) + 1
        ):
            if (
                lines[candidate].strip() == first
                and lines[candidate + count - 1].strip() == last
            ):
                return candidate, "boundary"
    return None, ""


def _mismatch(lines: list[str], search: list[str], index: int) -> Conflict:
    start = max(0, index - CONTEXT_LINES)
    stop = min(len(lines), index + len(search) + CONTEXT_LINES)
    context = [
        f"{'>>>' if number == index else '   '} {number + 1}: {lines[number]}"
        for number in range(start, stop)
    ]
    actual = lines[index : index + len(search)]
    message = "\n".join(
        [
            f"Search content does not match at line {index + 1}.",
            "",
            "Context:",
            *context,
            "",
            "Expected content:",
            "\n".join(search),
            "",
            "Actual content:",
            "\n".join(actual),
        ]
    )
    return Conflict(
        message,
        hint="Re-read the file with include_line_numbers=true and copy the lines verbatim.",
        details={
            "start_line": index + 1,
            "expected": "\n".join(search),
            "actual": "\n".join(actual),
        },
    )


def apply_diff_to_text(content: str, diff: str) -> tuple[list[str], list[BlockOutcome]]:
    """Parse and apply a diff against LF-normalized content lines."""
    return apply_diff_blocks(split_lines(content), parse_diff(diff))
