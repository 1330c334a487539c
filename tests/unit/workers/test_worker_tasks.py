from __future__ import annotations

from pathlib import Path

import pytest

from toolcore.errors import BadRequest, NotFound, Unsupported
from toolcore.workers import TASK_KINDS, run_task

SOURCE = "from os import path\n\n\ndef join(a):\n    return path.join(a, 'x')\n"


def test_unknown_kind_is_unsupported() -> None:
    with pytest.raises(Unsupported):
        run_task("compile", {})


def test_every_declared_kind_is_runnable_or_validates_payload() -> None:
    for kind in TASK_KINDS:
        with pytest.raises(BadRequest):
            run_task(kind, {})


def test_analyze_symbol_reports_import_origin() -> None:
    result = run_task("analyze_symbol", {"path": "j.py", "content": SOURCE, "symbol": "path"})

    assert result["type"] == "import"
    assert result["imported_from"] == "os"
    assert [item["line"] for item in result["usages"]] == [5]


def test_analyze_symbol_for_defined_function() -> None:
    result = run_task("analyze_symbol", {"path": "j.py", "content": SOURCE, "symbol": "join"})

    assert result["type"] == "function"
    assert result["scope"] == "module"
    assert result["exported"] is True
    assert result["documented"] is False


def test_data_flow_task_honours_start_line() -> None:
    result = run_task(
        "data_flow", {"path": "j.py", "content": SOURCE, "variable": "a", "start_line": 5}
    )

    assert result["definitions"] == []
    assert [item["line"] for item in result["usages"]] == [5]


def test_search_task_groups_by_file() -> None:
    result = run_task(
        "search", {"files": [["a.py", "alpha\nbeta\n"], ["b.py", "gamma\n"]], "term": "beta"}
    )

    assert [entry["file"] for entry in result["results"]] == ["a.py"]


def test_read_file_task(tmp_path: Path) -> None:
    target = tmp_path / "notes.txt"
    target.write_bytes(b"one\r\ntwo\n")

    result = run_task("read_file", {"full_path": str(target), "path": "notes.txt"})

    assert result == {"path": "notes.txt", "content": "one\r\ntwo\n"}

    with pytest.raises(NotFound) as error:
        run_task("read_file", {"full_path": str(tmp_path / "gone.txt"), "path": "gone.txt"})
    assert error.value.message == "File 'gone.txt' does not exist."
