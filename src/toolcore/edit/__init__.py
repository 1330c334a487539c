"""Diff, line-range, streaming and whole-file edit operations."""

from .diff import BlockOutcome, DiffBlock, apply_diff_blocks, parse_diff
from .engine import EditEngine
from .lines import InsertLines, LineEdit, ReplaceLines, apply_line_edits, validate_line_edits
from .text import detect_line_ending, split_lines, strip_markdown_fence

__all__ = [
    "BlockOutcome",
    "DiffBlock",
    "EditEngine",
    "InsertLines",
    "LineEdit",
    "ReplaceLines",
    "apply_diff_blocks",
    "apply_line_edits",
    "detect_line_ending",
    "parse_diff",
    "split_lines",
    "strip_markdown_fence",
    "validate_line_edits",
]
