from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.edit import EditEngine
from toolcore.editor import HeadlessEditor
from toolcore.errors import Conflict
from toolcore.history import UndoStack
from toolcore.validation import SyntaxValidator
from toolcore.workspace import Workspace

DIFF = (
    "<<<<<<< SEARCH\n:start_line:2\n-------\nconst b = 2;\n=======\nconst b = 3;\n"
    ">>>>>>> REPLACE\n"
)


def _engine(editor: HeadlessEditor | None = None) -> EditEngine:
    return EditEngine(UndoStack(), SyntaxValidator(), editor or HeadlessEditor())


@pytest.mark.asyncio
async def test_undo_restores_exact_bytes(tmp_path: Path) -> None:
    original = b"const a = 1;\r\nconst b = 2;\r\n// caf\xe9 \xff raw\r\n"
    target = tmp_path / "app.js"
    target.write_bytes(original)
    engine = _engine()
    workspace = Workspace(tmp_path)

    await engine.apply_diff(workspace, "app.js", DIFF)
    assert target.read_bytes() != original

    result = await engine.undo_last(workspace)

    assert result["message"] == "Last change to 'app.js' has been undone."
    assert target.read_bytes() == original


@pytest.mark.asyncio
async def test_crlf_line_endings_are_preserved(tmp_path: Path) -> None:
    target = tmp_path / "app.js"
    target.write_bytes(b"const a = 1;\r\nconst b = 2;\r\nconst c = 3;\r\n")
    engine = _engine()

    payload = await engine.apply_diff(Workspace(tmp_path), "app.js", DIFF)

    assert target.read_bytes() == b"const a = 1;\r\nconst b = 3;\r\nconst c = 3;\r\n"
    assert payload["details"]["strategies"] == ["exact"]
    assert "__warnings__" not in payload


@pytest.mark.asyncio
async def test_line_edits_keep_lf_and_report_warnings(tmp_path: Path) -> None:
    target = tmp_path / "notes.md"
    target.write_text("one\ntwo\nthree\n", encoding="utf-8")
    engine = _engine()

    payload = await engine.edit_lines(
        Workspace(tmp_path),
        "notes.md",
        [{"type": "replace_lines", "start_line": 2, "end_line": 2, "new_content": "TWO"}],
    )

    assert target.read_bytes() == b"one\nTWO\nthree\n"
    assert payload["details"]["processing_method"] == "in_memory"
    assert len(payload["__warnings__"]) == 1


@pytest.mark.asyncio
async def test_undo_of_created_file_removes_it(tmp_path: Path) -> None:
    editor = HeadlessEditor()
    engine = _engine(editor)
    workspace = Workspace(tmp_path)

    payload = await engine.create(workspace, "src/new.js", "export const x = 1;\n")
    assert editor.is_open("src/new.js")
    assert payload["details"] == {"overwritten": False}

    result = await engine.undo_last(workspace)

    assert result["message"] == "Undid the creation of 'src/new.js'."
    assert not (tmp_path / "src" / "new.js").exists()
    assert not editor.is_open("src/new.js")


@pytest.mark.asyncio
async def test_undo_with_empty_history_is_a_no_op(tmp_path: Path) -> None:
    result = await _engine().undo_last(Workspace(tmp_path))

    assert result == {"message": "No file modifications to undo."}


@pytest.mark.asyncio
async def test_undo_is_lifo_across_files(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("a0", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b0", encoding="utf-8")
    engine = _engine()
    workspace = Workspace(tmp_path)

    await engine.rewrite(workspace, "a.txt", "a1")
    await engine.rewrite(workspace, "b.txt", "b1")
    await engine.rewrite(workspace, "a.txt", "a2")

    await engine.undo_last(workspace)
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "a1"
    await engine.undo_last(workspace)
    assert (tmp_path / "b.txt").read_text(encoding="utf-8") == "b0"
    await engine.undo_last(workspace)
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "a0"


@pytest.mark.asyncio
async def test_syntax_errors_are_written_but_reported(tmp_path: Path) -> None:
    engine = _engine()

    payload = await engine.rewrite(Workspace(tmp_path), "broken.js", "function f() {\n")

    assert (tmp_path / "broken.js").read_text(encoding="utf-8") == "function f() {\n"
    assert "WARNING: Syntax errors were detected" in str(payload["message"])
    assert payload["validation"]["valid"] is False


@pytest.mark.asyncio
async def test_markdown_fence_is_stripped_from_created_content(tmp_path: Path) -> None:
    engine = _engine()

    await engine.create(Workspace(tmp_path), "a.py", "```python\nprint('hi')\n```")

    assert (tmp_path / "a.py").read_text(encoding="utf-8") == "print('hi')"


@pytest.mark.asyncio
async def test_append_separates_with_newline(tmp_path: Path) -> None:
    (tmp_path / "log.txt").write_text("first", encoding="utf-8")
    engine = _engine()

    await engine.append(Workspace(tmp_path), "log.txt", "second")

    assert (tmp_path / "log.txt").read_text(encoding="utf-8") == "first\nsecond"


@pytest.mark.asyncio
async def test_stale_line_edit_batch_writes_nothing(tmp_path: Path) -> None:
    original = b"first\r\nsecond\r\nthird\r\n"
    target = tmp_path / "notes.txt"
    target.write_bytes(original)
    undo = UndoStack()
    engine = EditEngine(undo, SyntaxValidator(), HeadlessEditor())

    with pytest.raises(Conflict):
        await engine.edit_lines(
            Workspace(tmp_path),
            "notes.txt",
            [
                {"type": "insert_lines", "line_number": 0, "new_content": "top"},
                {
                    "type": "replace_lines",
                    "start_line": 2,
                    "end_line": 2,
                    "expected_content": "old",
                    "new_content": "new",
                },
            ],
        )

    assert target.read_bytes() == original
    assert len(undo) == 0


@pytest.mark.asyncio
async def test_tagged_insert_keeps_crlf(tmp_path: Path) -> None:
    target = tmp_path / "notes.txt"
    target.write_bytes(b"a\r\nb")
    engine = _engine()

    payload = await engine.edit_lines(
        Workspace(tmp_path),
        "notes.txt",
        [{"type": "insert_lines", "line_number": 2, "new_content": "c"}],
    )

    assert target.read_bytes() == b"a\r\nb\r\nc"
    assert payload["details"]["affected_ranges"] == [
        {"type": "insert_lines", "after_line": 2, "new_line_count": 1}
    ]
