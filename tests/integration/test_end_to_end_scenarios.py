from __future__ import annotations

import asyncio
import json
from pathlib import Path

import httpx

from toolcore.server import ToolCoreServer, create_server

DIFF_Y = "<<<<<<< SEARCH\n:start_line:2\n-------\ny\n=======\nY\n>>>>>>> REPLACE"
KAFKA_PAGE = "https://kafka.apache.org/documentation/compaction"


def _server(tmp_path: Path, transport: httpx.AsyncBaseTransport | None = None) -> ToolCoreServer:
    repo = tmp_path / "repo"
    repo.mkdir(exist_ok=True)
    return create_server(
        repo_root=str(repo), data_dir=str(tmp_path / "data"), http_transport=transport
    )


def _call(server: ToolCoreServer, name: str, arguments: dict[str, object]) -> dict[str, object]:
    return server.handle_payload(
        {
            "id": f"req-{name}",
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
        }
    )


def test_create_then_read_returns_same_content(tmp_path: Path) -> None:
    server = _server(tmp_path)

    created = _call(server, "create_file", {"filename": "a.txt", "content": "hello\n"})
    read = _call(server, "read_file", {"filename": "a.txt"})
    server.close()

    assert created["ok"] is True
    assert read["ok"] is True
    assert read["result"]["payload"]["content"] == "hello\n"
    assert (tmp_path / "repo" / "a.txt").read_bytes() == b"hello\n"


def test_apply_diff_then_undo_restores_original(tmp_path: Path) -> None:
    server = _server(tmp_path)
    target = tmp_path / "repo" / "b.txt"
    target.write_bytes(b"x\ny\nz")

    applied = _call(server, "apply_diff", {"filename": "b.txt", "diff": DIFF_Y})
    after_diff = target.read_bytes()
    undone = _call(server, "undo_last_change", {})
    server.close()

    assert applied["ok"] is True
    assert applied["result"]["payload"]["details"]["strategies"] == ["exact"]
    assert after_diff == b"x\nY\nz"
    assert undone["ok"] is True
    assert target.read_bytes() == b"x\ny\nz"


def test_apply_diff_mismatch_is_a_conflict_with_context(tmp_path: Path) -> None:
    server = _server(tmp_path)
    target = tmp_path / "repo" / "b.txt"
    target.write_bytes(b"x\ny\nz")

    response = _call(
        server,
        "apply_diff",
        {"filename": "b.txt", "diff": DIFF_Y.replace("\ny\n=", "\nq\n=")},
    )
    server.close()

    assert response["ok"] is False
    assert response["blocked"] is False
    assert response["error"]["code"] == "Conflict"
    assert ">>> 2: y" in response["error"]["message"]
    assert response["result"]["error"]["details"]["start_line"] == 2
    assert target.read_bytes() == b"x\ny\nz"


def test_line_edit_with_stale_expectation_leaves_file_untouched(tmp_path: Path) -> None:
    server = _server(tmp_path)
    target = tmp_path / "repo" / "c.txt"
    target.write_bytes(b"different\nsecond\n")

    response = _call(
        server,
        "edit_file",
        {
            "filename": "c.txt",
            "edits": [
                {
                    "type": "replace_lines",
                    "start_line": 1,
                    "end_line": 1,
                    "expected_content": "old",
                    "new_content": "new",
                }
            ],
        },
    )
    server.close()

    assert response["ok"] is False
    assert response["error"]["code"] == "Conflict"
    assert response["result"]["error"]["details"] == {"expected": "old", "actual": "different"}
    assert target.read_bytes() == b"different\nsecond\n"


def test_slow_research_degrades_with_partial_sources(tmp_path: Path) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if request.url.path == "/api/duckduckgo-search":
            if body["query"] != "kafka compaction":
                await asyncio.sleep(5)
            return httpx.Response(
                200,
                json={
                    "results": [
                        {
                            "title": "Kafka compaction",
                            "link": KAFKA_PAGE,
                            "snippet": "log compaction in kafka",
                        }
                    ]
                },
            )
        content = "Compaction keeps the latest record per key. " + "segment " * 6
        return httpx.Response(200, json={"content": content, "links": []})

    server = _server(tmp_path, httpx.MockTransport(handler))

    response = _call(
        server,
        "perform_research",
        {"query": "kafka compaction", "queries": ["kafka compaction"], "deadline_ms": 1000},
    )
    server.close()

    assert response["ok"] is True
    payload = response["result"]["payload"]
    assert payload["status"] == "Degraded"
    assert payload["results"]["stats"]["degraded_reason"] == "Timeout"
    assert [source["url"] for source in payload["results"]["sources"]] == [KAFKA_PAGE]
    assert payload["references"] == [KAFKA_PAGE]
