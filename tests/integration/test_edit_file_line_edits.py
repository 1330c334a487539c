from __future__ import annotations

from pathlib import Path

from toolcore.server import ToolCoreServer, create_server


def _server(tmp_path: Path) -> tuple[ToolCoreServer, Path]:
    repo = tmp_path / "repo"
    repo.mkdir()
    return create_server(repo_root=str(repo), data_dir=str(tmp_path / "data")), repo


def _edit(
    server: ToolCoreServer, filename: str, edits: list[dict[str, object]]
) -> dict[str, object]:
    params = {"name": "edit_file", "arguments": {"filename": filename, "edits": edits}}
    return server.handle_payload({"id": "req-edit", "method": "tools/call", "params": params})


def test_insert_lines_after_a_line(tmp_path: Path) -> None:
    server, repo = _server(tmp_path)
    target = repo / "a.txt"
    target.write_bytes(b"a\nb\n")

    response = _edit(
        server, "a.txt", [{"type": "insert_lines", "line_number": 1, "new_content": "X"}]
    )
    server.close()

    assert response["ok"] is True, response.get("error")
    assert target.read_bytes() == b"a\nX\nb\n"


def test_insert_lines_at_top_and_at_line_count(tmp_path: Path) -> None:
    server, repo = _server(tmp_path)
    target = repo / "list.txt"
    target.write_bytes(b"one\ntwo")

    response = _edit(
        server,
        "list.txt",
        [
            {"type": "insert_lines", "line_number": 0, "new_content": "head"},
            {"type": "insert_lines", "line_number": 2, "new_content": "tail"},
        ],
    )
    server.close()

    assert response["ok"] is True, response.get("error")
    assert target.read_bytes() == b"head\none\ntwo\ntail"


def test_replacements_run_before_insertions_in_one_batch(tmp_path: Path) -> None:
    server, repo = _server(tmp_path)
    target = repo / "steps.txt"
    target.write_bytes(b"one\ntwo\nthree")

    response = _edit(
        server,
        "steps.txt",
        [
            {"type": "insert_lines", "line_number": 2, "new_content": "inserted"},
            {
                "type": "replace_lines",
                "start_line": 2,
                "end_line": 2,
                "expected_content": "two",
                "new_content": "TWO",
            },
            {"type": "insert_lines", "line_number": 0, "new_content": "top"},
        ],
    )
    server.close()

    assert response["ok"] is True, response.get("error")
    assert target.read_bytes() == b"top\none\nTWO\ninserted\nthree"
    assert response["warnings"] == []


def test_expected_content_mismatch_leaves_bytes_identical(tmp_path: Path) -> None:
    server, repo = _server(tmp_path)
    target = repo / "crlf.txt"
    original = b"first\r\nsecond\r\nthird\r\n"
    target.write_bytes(original)

    response = _edit(
        server,
        "crlf.txt",
        [
            {"type": "insert_lines", "line_number": 0, "new_content": "never"},
            {
                "type": "replace_lines",
                "start_line": 2,
                "end_line": 2,
                "expected_content": "stale",
                "new_content": "new",
            },
        ],
    )
    undo = server.handle_payload(
        {"id": "req-undo", "method": "tools/call", "params": {"name": "undo_last_change"}}
    )
    server.close()

    assert response["ok"] is False
    assert response["error"]["code"] == "Conflict"
    assert response["result"]["error"]["details"] == {"expected": "stale", "actual": "second"}
    assert target.read_bytes() == original
    assert undo["result"]["payload"]["message"] == "No file modifications to undo."


def test_unknown_edit_type_names_the_accepted_tags(tmp_path: Path) -> None:
    server, repo = _server(tmp_path)
    (repo / "a.txt").write_bytes(b"a\n")

    response = _edit(server, "a.txt", [{"type": "delete_lines", "start_line": 1}])
    server.close()

    assert response["error"]["code"] == "BadRequest"
    assert "'replace_lines' or 'insert_lines'" in response["error"]["message"]
