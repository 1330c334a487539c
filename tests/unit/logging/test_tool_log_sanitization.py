from __future__ import annotations

import json
from pathlib import Path

from toolcore.logging import sanitize_arguments
from toolcore.server import create_server


def test_tool_log_never_contains_file_bodies(tmp_path: Path) -> None:
    server = create_server(repo_root=str(tmp_path))
    server.handle_payload(
        {
            "id": "req-200",
            "method": "create_file",
            "params": {"filename": "config.js", "content": "const API_KEY = 'top-secret';\n"},
        }
    )
    server.close()

    log_path = tmp_path / ".toolcore" / "tool_log.jsonl"
    entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
    event = entries[-1]

    metadata = event["metadata"]
    assert metadata["filename"] == "config.js"
    assert metadata["content_present"] is True
    assert metadata["content_length"] == len("const API_KEY = 'top-secret';\n")
    assert "content" not in metadata
    assert "top-secret" not in json.dumps(event, sort_keys=True)


def test_sanitize_arguments_reduces_unknown_values_to_shapes() -> None:
    sanitized = sanitize_arguments(
        {
            "custom_note": "token=abc123",
            "filenames": ["a.js", "b.js"],
            "updates": {"status": "completed"},
            "line": 4,
            "force": True,
        }
    )

    assert sanitized == {
        "custom_note_length": len("token=abc123"),
        "filenames_type": "list",
        "filenames_length": 2,
        "force": True,
        "line": 4,
        "updates_keys": ["status"],
        "updates_type": "dict",
    }
