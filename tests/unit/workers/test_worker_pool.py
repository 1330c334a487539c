from __future__ import annotations

import time

import pytest

from toolcore.config import WorkersConfig
from toolcore.errors import ToolTimeout, WorkerFailure
from toolcore.workers import BatchJob, WorkerPool

SOURCE = "def add(a, b):\n    return a + b\n"


@pytest.mark.asyncio
async def test_process_file_runs_job_on_executor() -> None:
    pool = WorkerPool(WorkersConfig(max_workers=2))
    try:
        result = await pool.process_file("symbols", {"path": "m.py", "content": SOURCE})
    finally:
        pool.shutdown()

    assert result["summary"]["functions"] == 1
    assert pool.stats()["completed"] == 1
    assert pool.pending_jobs == ()


@pytest.mark.asyncio
async def test_slow_job_times_out() -> None:
    def slow_runner(kind: str, payload: dict[str, object]) -> dict[str, object]:
        time.sleep(0.5)
        return {}

    pool = WorkerPool(WorkersConfig(), runner=slow_runner)
    try:
        with pytest.raises(ToolTimeout) as error:
            await pool.process_file("quality", {}, timeout=0.05)
    finally:
        pool.shutdown()

    assert "timed out after 0.05s" in error.value.message
    assert pool.stats()["failures"] == 1


@pytest.mark.asyncio
async def test_failed_kind_falls_back_in_process() -> None:
    pool = WorkerPool(WorkersConfig())
    pool.mark_failed("symbols")
    try:
        with pytest.raises(WorkerFailure):
            await pool.process_file("symbols", {"path": "m.py", "content": SOURCE})
        result = await pool.run_with_fallback("symbols", {"path": "m.py", "content": SOURCE})
    finally:
        pool.shutdown()

    assert result["fallback"] is True
    assert result["summary"]["functions"] == 1
    assert pool.stats()["fallbacks"] == 1
    assert pool.stats()["failed_kinds"] == ["symbols"]


@pytest.mark.asyncio
async def test_timeout_does_not_trigger_fallback() -> None:
    calls: list[str] = []

    def slow_runner(kind: str, payload: dict[str, object]) -> dict[str, object]:
        calls.append(kind)
        time.sleep(0.3)
        return {}

    pool = WorkerPool(WorkersConfig(), runner=slow_runner)
    try:
        with pytest.raises(ToolTimeout):
            await pool.run_with_fallback("quality", {}, timeout=0.05)
    finally:
        pool.shutdown()

    assert calls == ["quality"]
    assert pool.stats()["fallbacks"] == 0


@pytest.mark.asyncio
async def test_shut_down_pool_still_serves_fallback() -> None:
    pool = WorkerPool(WorkersConfig())
    pool.shutdown()

    with pytest.raises(WorkerFailure):
        await pool.process_file("validate", {"path": "a.json", "content": "{}"})
    result = await pool.run_with_fallback("validate", {"path": "a.json", "content": "{}"})

    assert result["valid"] is True
    assert result["fallback"] is True


@pytest.mark.asyncio
async def test_execute_batch_reports_each_job() -> None:
    pool = WorkerPool(WorkersConfig())
    jobs = [
        BatchJob("validate", {"path": "a.json", "content": "[1]"}),
        BatchJob("no_such_kind", {}),
        BatchJob("validate", {"path": "b.json"}),
    ]
    try:
        results = await pool.execute_batch(jobs, fallback=False)
    finally:
        pool.shutdown()

    assert results[0] == {
        "job": 0,
        "ok": True,
        "result": {
            "valid": True,
            "language": "json",
            "errors": [],
            "warnings": [],
            "suggestions": [],
        },
    }
    assert results[1]["ok"] is False
    assert results[1]["error"]["kind"] == "Unsupported"
    assert results[2]["error"] == {
        "kind": "BadRequest",
        "message": "Worker payload field 'content' must be a string.",
    }


@pytest.mark.asyncio
async def test_parse_ast_returns_symbol_table() -> None:
    pool = WorkerPool(WorkersConfig())
    try:
        table = await pool.parse_ast(SOURCE, "m.py")
    finally:
        pool.shutdown()

    assert table["language"] == "python"
    assert [item["name"] for item in table["functions"]] == ["add"]
