from __future__ import annotations

import json
from pathlib import Path

from toolcore.logging import JsonlToolLogger, ToolLogEntry
from toolcore.server import create_server


def _entry(request_id: str, timestamp: str) -> ToolLogEntry:
    return ToolLogEntry(
        timestamp=timestamp,
        request_id=request_id,
        tool="read_file",
        status="Success",
        elapsed_ms=3,
        error_kind=None,
        cached=False,
        metadata={},
    )


def test_tool_log_writes_jsonl_schema(tmp_path: Path) -> None:
    (tmp_path / "app.js").write_text("const a = 1;\n", encoding="utf-8")
    server = create_server(repo_root=str(tmp_path))
    server.handle_payload(
        {"id": "req-100", "method": "read_file", "params": {"filename": "app.js"}}
    )
    server.close()

    log_path = tmp_path / ".toolcore" / "tool_log.jsonl"
    assert log_path.exists()

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) >= 1
    event = json.loads(lines[-1])

    assert set(event.keys()) == {
        "cached",
        "elapsed_ms",
        "error_kind",
        "metadata",
        "request_id",
        "status",
        "timestamp",
        "tool",
    }
    assert event["request_id"] == "req-100"
    assert event["tool"] == "read_file"
    assert event["status"] == "Success"
    assert event["error_kind"] is None
    assert isinstance(event["timestamp"], str)
    assert event["metadata"] == {"filename": "app.js"}


def test_tool_log_records_error_kind(tmp_path: Path) -> None:
    server = create_server(repo_root=str(tmp_path))
    server.handle_payload(
        {"id": "req-101", "method": "read_file", "params": {"filename": "missing.js"}}
    )
    server.close()

    log_path = tmp_path / ".toolcore" / "tool_log.jsonl"
    event = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])

    assert event["status"] == "Error"
    assert event["error_kind"] == "NotFound"


def test_reader_filters_by_timestamp_and_keeps_newest(tmp_path: Path) -> None:
    tool_log = JsonlToolLogger(tmp_path / "log.jsonl")
    tool_log.append(_entry("a", "2026-01-01T00:00:00.000Z"))
    tool_log.append(_entry("b", "2026-01-02T00:00:00.000Z"))
    tool_log.append(_entry("c", "2026-01-03T00:00:00.000Z"))

    since = tool_log.read(since="2026-01-02T00:00:00.000Z")
    newest = tool_log.read(limit=1)

    assert [entry["request_id"] for entry in since] == ["b", "c"]
    assert [entry["request_id"] for entry in newest] == ["c"]


def test_reader_skips_corrupt_lines(tmp_path: Path) -> None:
    path = tmp_path / "log.jsonl"
    tool_log = JsonlToolLogger(path)
    tool_log.append(_entry("a", "2026-01-01T00:00:00.000Z"))
    with path.open("a", encoding="utf-8") as handle:
        handle.write("{not json\n")

    assert [entry["request_id"] for entry in tool_log.read()] == ["a"]
