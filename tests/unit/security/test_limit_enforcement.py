from __future__ import annotations

from pathlib import Path

from toolcore.config import CliOverrides
from toolcore.server import create_server


def test_max_file_bytes_limit_blocks_read_file(tmp_path: Path) -> None:
    target = tmp_path / "large.txt"
    target.write_text("a" * 20, encoding="utf-8")
    server = create_server(
        repo_root=str(tmp_path), cli_overrides=CliOverrides(max_file_bytes=10)
    )

    response = server.handle_payload(
        {"id": "req-large-file", "method": "read_file", "params": {"filename": "large.txt"}}
    )
    server.close()

    assert response["blocked"] is True
    assert response["error"] == {
        "code": "PermissionDenied",
        "message": "File exceeds max_file_bytes limit.",
    }
    assert "aaaa" not in str(response)


def test_max_open_lines_limit_blocks_large_range(tmp_path: Path) -> None:
    target = tmp_path / "many_lines.txt"
    target.write_text("1\n2\n3\n4\n5\n", encoding="utf-8")
    server = create_server(
        repo_root=str(tmp_path), cli_overrides=CliOverrides(max_open_lines=2)
    )

    response = server.handle_payload(
        {
            "id": "req-lines",
            "method": "read_file_lines",
            "params": {"filename": "many_lines.txt", "start_line": 1, "end_line": 5},
        }
    )
    server.close()

    assert response["blocked"] is True
    assert response["error"] == {
        "code": "PermissionDenied",
        "message": "Requested line range exceeds max_open_lines limit.",
    }


def test_max_search_hits_limit_truncates_search_in_file(tmp_path: Path) -> None:
    target = tmp_path / "hits.js"
    target.write_text("\n".join(f"const hit{n} = {n};" for n in range(10)), encoding="utf-8")
    server = create_server(
        repo_root=str(tmp_path), cli_overrides=CliOverrides(max_search_hits=3)
    )

    response = server.handle_payload(
        {
            "id": "req-search",
            "method": "search_in_file",
            "params": {"filename": "hits.js", "pattern": "hit", "context": 0},
        }
    )
    server.close()

    payload = response["result"]["payload"]
    assert response["ok"] is True
    assert len(payload["results"]) == 3
    assert payload["truncated"] is True
    assert payload["total_matches"] == 10


def test_large_file_read_returns_preview_within_read_limit(tmp_path: Path) -> None:
    target = tmp_path / "big.md"
    target.write_text("x" * 500, encoding="utf-8")
    server = create_server(
        repo_root=str(tmp_path), cli_overrides=CliOverrides(max_read_bytes=100)
    )

    response = server.handle_payload(
        {"id": "req-preview", "method": "read_file", "params": {"filename": "big.md"}}
    )
    server.close()

    payload = response["result"]["payload"]
    assert payload["truncated"] is True
    assert payload["preview_size"] == 100
    assert len(payload["content"]) == 100
