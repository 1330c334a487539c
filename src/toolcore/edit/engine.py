"""Edit pipeline: compute, snapshot for undo, validate, write, sync editor."""

from __future__ import annotations

from pathlib import Path

from toolcore.edit.diff import apply_diff_blocks, parse_diff
from toolcore.edit.lines import apply_line_edits, parse_line_edits, validate_line_edits
from toolcore.edit.streaming import read_streaming, should_stream, write_streaming
from toolcore.edit.text import (
    LF,
    detect_line_ending,
    join_lines,
    split_lines,
    strip_markdown_fence,
)
from toolcore.editor import EditorBridge
from toolcore.errors import BadRequest
from toolcore.history import UndoStack
from toolcore.logging import get_logger
from toolcore.validation import SyntaxValidator, format_issues
from toolcore.workspace import Workspace

LARGE_CONTENT_BYTES = 1024 * 1024

logger = get_logger("edit")


class EditEngine:
    """Runs every content mutation through the same undo/validate/write pipeline."""

    def __init__(
        self,
        undo: UndoStack,
        validator: SyntaxValidator,
        editor: EditorBridge,
    ) -> None:
        self._undo = undo
        self._validator = validator
        self._editor = editor

    @property
    def undo_stack(self) -> UndoStack:
        return self._undo

    async def apply_diff(self, workspace: Workspace, filename: str, diff: str) -> dict[str, object]:
        """Apply SEARCH/REPLACE blocks to an existing file."""
        blocks = parse_diff(diff)
        resolved = workspace.resolve_existing_file(filename)
        workspace.ensure_writable(resolved)
        original = workspace.read_text(resolved)
        lines = split_lines(original)
        new_lines, outcomes = apply_diff_blocks(lines, blocks)

        strategies = [outcome.strategy for outcome in outcomes]
        warnings: list[str] = []
        fuzzy = sorted({strategy for strategy in strategies if strategy != "exact"})
        if fuzzy:
            warnings.append(
                f"Some blocks matched with fuzzy strategies ({', '.join(fuzzy)}); "
                "re-read the file before further edits."
            )
        return await self._commit(
            workspace,
            resolved,
            original=original,
            new_lines=new_lines,
            line_ending=detect_line_ending(original),
            message=f"Applied {len(blocks)} diff block(s) to '{filename}' successfully.",
            warning_header="WARNING: Syntax errors were detected:",
            warnings=warnings,
            details={
                "original_lines": len(lines),
                "final_lines": len(new_lines),
                "blocks_applied": len(outcomes),
                "strategies": strategies,
                "blocks": [
                    {
                        "start_line": outcome.start_line,
                        "matched_line": outcome.matched_line,
                        "strategy": outcome.strategy,
                    }
                    for outcome in outcomes
                ],
            },
        )

    async def edit_lines(
        self, workspace: Workspace, filename: str, raw_edits: object
    ) -> dict[str, object]:
        """Apply line-range replacements and insertions."""
        edits = parse_line_edits(raw_edits)
        resolved = workspace.resolve_existing_file(filename)
        workspace.ensure_writable(resolved)

        streaming = should_stream(resolved)
        if streaming:
            streamed = await read_streaming(resolved)
            original, lines, line_ending = streamed.raw, streamed.lines, streamed.line_ending
        else:
            original = workspace.read_text(resolved)
            lines = split_lines(original)
            line_ending = detect_line_ending(original)

        checked, warnings = validate_line_edits(lines, edits)
        new_lines, affected = apply_line_edits(lines, checked)
        return await self._commit(
            workspace,
            resolved,
            original=original,
            new_lines=new_lines,
            line_ending=line_ending,
            message=f"Applied {len(checked)} edit(s) to '{filename}' successfully.",
            warnings=warnings,
            streaming=streaming,
            details={
                "original_lines": len(lines),
                "final_lines": len(new_lines),
                "affected_ranges": affected,
                "processing_method": "streaming" if streaming else "in_memory",
            },
        )

    async def rewrite(self, workspace: Workspace, filename: str, content: str) -> dict[str, object]:
        """Replace the whole file, creating it when missing."""
        content = strip_markdown_fence(content)
        resolved = workspace.resolve(filename)
        if resolved.is_dir():
            raise BadRequest(f"'{filename}' is a folder, not a file.")
        workspace.ensure_writable(resolved)
        original = workspace.read_text_or_none(resolved)

        warnings: list[str] = []
        size = len(content.encode("utf-8", "surrogateescape"))
        if size > LARGE_CONTENT_BYTES:
            warnings.append(
                f"Large file content ({size} bytes); prefer 'edits' or apply_diff for "
                "targeted changes."
            )
        new_lines = split_lines(content)
        return await self._commit(
            workspace,
            resolved,
            original=original,
            new_lines=new_lines,
            line_ending=detect_line_ending(original) if original is not None else LF,
            message=f"File '{filename}' rewritten successfully.",
            warnings=warnings,
            details={
                "original_lines": len(split_lines(original)) if original is not None else 0,
                "final_lines": len(new_lines),
                "processing_method": "in_memory",
            },
        )

    async def append(self, workspace: Workspace, filename: str, content: str) -> dict[str, object]:
        """Append content, separated by a newline from non-empty existing text."""
        content = strip_markdown_fence(content)
        resolved = workspace.resolve(filename)
        workspace.ensure_writable(resolved)
        original = workspace.read_text_or_none(resolved)
        existing = (original or "").replace("\r\n", "\n")
        combined = existing + (LF if existing else "") + content.replace("\r\n", "\n")
        new_lines = split_lines(combined)
        return await self._commit(
            workspace,
            resolved,
            original=original,
            new_lines=new_lines,
            line_ending=detect_line_ending(original) if original else LF,
            message=f"Content appended to '{filename}' successfully.",
            details={"final_lines": len(new_lines)},
        )

    async def create(self, workspace: Workspace, filename: str, content: str) -> dict[str, object]:
        """Create (or overwrite) a file and open it in the editor."""
        content = strip_markdown_fence(content)
        resolved = workspace.resolve(filename)
        if resolved.is_dir():
            raise BadRequest(f"'{filename}' is a folder, not a file.")
        workspace.ensure_writable(resolved)
        original = workspace.read_text_or_none(resolved)
        payload = await self._commit(
            workspace,
            resolved,
            original=original,
            new_lines=split_lines(content),
            line_ending=LF,
            message=f"File '{filename}' created successfully.",
            details={"overwritten": original is not None},
        )
        self._editor.open(workspace.relative(resolved), content)
        return payload

    def snapshot_for_delete(self, workspace: Workspace, resolved: Path) -> None:
        """Record a file's content so undo can restore it after deletion."""
        self._undo.push(workspace.relative(resolved), workspace.read_text(resolved))

    async def undo_last(self, workspace: Workspace) -> dict[str, object]:
        """Restore the most recent snapshot byte-for-byte."""
        entry = self._undo.pop()
        if entry is None:
            return {"message": "No file modifications to undo."}
        resolved = workspace.resolve(entry.path)
        workspace.ensure_writable(resolved)
        if entry.content is None:
            if resolved.is_file():
                resolved.unlink()
            self._editor.close(entry.path)
            return {
                "message": f"Undid the creation of '{entry.path}'.",
                "path": entry.path,
            }
        workspace.write_text(resolved, entry.content)
        self._editor.update(entry.path, entry.content)
        self._validator.invalidate(entry.path)
        return {
            "message": f"Last change to '{entry.path}' has been undone.",
            "path": entry.path,
        }

    async def _commit(
        self,
        workspace: Workspace,
        resolved: Path,
        *,
        original: str | None,
        new_lines: list[str],
        line_ending: str,
        message: str,
        details: dict[str, object],
        warnings: list[str] | None = None,
        warning_header: str = (
            "WARNING: Syntax errors were detected and have been written to the file.\nErrors:"
        ),
        streaming: bool = False,
    ) -> dict[str, object]:
        relative = workspace.relative(resolved)
        self._undo.push(relative, original)

        validation = self._validator.validate(relative, join_lines(new_lines))
        if not validation.valid:
            message = f"{message}\n\n{warning_header}\n{format_issues(validation)}"
            logger.info("Syntax errors written to {}", relative)

        if streaming:
            await write_streaming(workspace, resolved, new_lines, line_ending)
        else:
            workspace.write_text(resolved, join_lines(new_lines, line_ending))

        if self._editor.is_open(relative):
            self._editor.update(relative, join_lines(new_lines, line_ending))

        payload: dict[str, object] = {
            "message": message,
            "filename": relative,
            "details": details,
            "validation": validation.to_dict(),
        }
        if warnings:
            payload["__warnings__"] = list(warnings)
        return payload
