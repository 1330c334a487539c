"""Line-range edits with optional expected-content verification."""

from __future__ import annotations

from dataclasses import dataclass

from toolcore.edit.text import content_lines, strip_markdown_fence
from toolcore.errors import BadRequest, Conflict


@dataclass(slots=True, frozen=True)
class ReplaceLines:
    """Replace lines start_line..end_line (inclusive, 1-based)."""

    start_line: int
    end_line: int
    new_content: str
    expected_content: str | None = None


@dataclass(slots=True, frozen=True)
class InsertLines:
    """Insert after line_number; 0 inserts at the top of the file."""

    line_number: int
    new_content: str


LineEdit = ReplaceLines | InsertLines

_EDIT_KINDS = {
    "replace_lines": "replace_lines",
    "insert_lines": "insert_lines",
    # short aliases
    "replace": "replace_lines",
    "insert": "insert_lines",
}


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def parse_line_edits(raw_edits: object) -> list[LineEdit]:
    """Turn the tool's `edits` argument into typed edits."""
    if not isinstance(raw_edits, list) or not raw_edits:
        raise BadRequest("The 'edits' parameter must be a non-empty array.")
    edits: list[LineEdit] = []
    for raw in raw_edits:
        if not isinstance(raw, dict):
            raise BadRequest("Each edit must be an object.")
        raw_kind = raw.get("type") or ("insert_lines" if "line_number" in raw else "replace_lines")
        kind = _EDIT_KINDS.get(raw_kind) if isinstance(raw_kind, str) else None
        new_content = raw.get("new_content", "")
        if not isinstance(new_content, str):
            raise BadRequest("Edit 'new_content' must be a string.")
        new_content = strip_markdown_fence(new_content)
        if kind == "insert_lines":
            line_number = _as_int(raw.get("line_number"))
            if line_number is None:
                raise BadRequest("Invalid line numbers in edit")
            edits.append(InsertLines(line_number=line_number, new_content=new_content))
        elif kind == "replace_lines":
            start_line = _as_int(raw.get("start_line"))
            end_line = _as_int(raw.get("end_line", raw.get("start_line")))
            if start_line is None or end_line is None:
                raise BadRequest("Invalid line numbers in edit")
            expected = raw.get("expected_content")
            if expected is not None and not isinstance(expected, str):
                raise BadRequest("Edit 'expected_content' must be a string.")
            edits.append(
                ReplaceLines(
                    start_line=start_line,
                    end_line=end_line,
                    new_content=new_content,
                    expected_content=expected,
                )
            )
        else:
            raise BadRequest(
                f"Unknown edit type '{raw_kind}'. Use 'replace_lines' or 'insert_lines'."
            )
    return edits


def validate_line_edits(
    lines: list[str], edits: list[LineEdit]
) -> tuple[list[LineEdit], list[str]]:
    """Check bounds and expected content against the current lines.

    Returns the edits with end lines clamped to the file length, plus
    deprecation warnings for replacements that carry no expected content.
    """
    line_count = len(lines)
    checked: list[LineEdit] = []
    warnings: list[str] = []
    for edit in edits:
        if isinstance(edit, InsertLines):
            if edit.line_number < 0 or edit.line_number > line_count:
                raise BadRequest(
                    f"Insert line_number {edit.line_number} is out of range (0-{line_count})."
                )
            checked.append(edit)
            continue

        if edit.start_line < 1 or edit.end_line < 1:
            raise BadRequest("Line numbers must be >= 1")
        if edit.start_line > edit.end_line:
            raise BadRequest(
                f"start_line ({edit.start_line}) cannot be greater than end_line ({edit.end_line})"
            )
        if edit.start_line > line_count:
            raise BadRequest(
                "start_line exceeds file length",
                details={"start_line": edit.start_line, "line_count": line_count},
            )
        end_line = min(edit.end_line, line_count)
        if edit.expected_content is None:
            warnings.append(
                f"Edit at lines {edit.start_line}-{end_line} has no expected_content; "
                "include it to guard against stale line numbers."
            )
        else:
            actual = "\n".join(lines[edit.start_line - 1 : end_line])
            if actual.strip() != edit.expected_content.strip():
                raise Conflict(
                    f"Content mismatch at lines {edit.start_line}-{end_line}. The file content "
                    "has likely changed. Please read the file again and construct a new edit.",
                    hint="Use read_file with include_line_numbers=true before editing.",
                    details={"expected": edit.expected_content, "actual": actual},
                )
        checked.append(
            ReplaceLines(
                start_line=edit.start_line,
                end_line=end_line,
                new_content=edit.new_content,
                expected_content=edit.expected_content,
            )
        )
    return checked, warnings


def _order_key(edit: LineEdit) -> tuple[int, int]:
    if isinstance(edit, ReplaceLines):
        return (edit.start_line, 1)
    return (edit.line_number, 0)


def apply_line_edits(
    lines: list[str], edits: list[LineEdit]
) -> tuple[list[str], list[dict[str, object]]]:
    """Apply validated edits bottom-up; replacements run before inserts on the same line."""
    result = list(lines)
    affected: list[dict[str, object]] = []
    for edit in sorted(edits, key=_order_key, reverse=True):
        if isinstance(edit, ReplaceLines):
            replacement = content_lines(edit.new_content)
            result[edit.start_line - 1 : edit.end_line] = replacement
            affected.append(
                {
                    "type": "replace_lines",
                    "start_line": edit.start_line,
                    "end_line": edit.end_line,
                    "new_line_count": len(replacement),
                }
            )
        else:
            inserted = edit.new_content.replace("\r\n", "\n").split("\n")
            result[edit.line_number : edit.line_number] = inserted
            affected.append(
                {
                    "type": "insert_lines",
                    "after_line": edit.line_number,
                    "new_line_count": len(inserted),
                }
            )
    affected.reverse()
    return result, affected
