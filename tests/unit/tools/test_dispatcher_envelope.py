from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from toolcore.config import DispatcherConfig
from toolcore.editor import HeadlessEditor
from toolcore.errors import BadRequest, Conflict
from toolcore.history import CheckpointStore
from toolcore.security import PathBlockedError, PolicyBlockedError
from toolcore.storage import JsonStore
from toolcore.tools import ToolCall, ToolCallEvent, ToolDescriptor, ToolDispatcher, ToolRegistry
from toolcore.tools.schema import param
from toolcore.workspace import Workspace


def _dispatcher(*descriptors: ToolDescriptor, **kwargs: object) -> ToolDispatcher:
    registry = ToolRegistry()
    for descriptor in descriptors:
        registry.register(descriptor.name, descriptor)
    return ToolDispatcher(registry, **kwargs)


async def _echo(arguments: dict[str, object], workspace: Workspace | None) -> dict[str, object]:
    return {"echo": arguments}


def _failing(error: Exception):
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        raise error

    return handler


@pytest.mark.asyncio
async def test_unknown_tool_is_a_bad_request() -> None:
    result = await _dispatcher().execute(ToolCall("nope"), None)

    assert result.status == "Error"
    assert result.error == {
        "kind": "BadRequest",
        "message": "Unknown tool: nope",
        "suggestion": "Call list_tools to see the available tool names.",
    }
    assert "payload" not in result.to_dict()


@pytest.mark.asyncio
async def test_project_tools_need_a_workspace() -> None:
    dispatcher = _dispatcher(ToolDescriptor(name="echo", handler=_echo))

    result = await dispatcher.execute(ToolCall("echo"), None)

    assert result.error is not None
    assert result.error["message"].startswith("No workspace is open.")


@pytest.mark.asyncio
async def test_arguments_are_coerced_before_the_handler_runs() -> None:
    dispatcher = _dispatcher(
        ToolDescriptor(
            name="echo",
            handler=_echo,
            requires_project=False,
            parameters=(
                param("count", "integer", required=True),
                param("flag", "boolean", default=False),
            ),
        )
    )

    result = await dispatcher.execute(ToolCall("echo", {"count": "3"}), None)
    missing = await dispatcher.execute(ToolCall("echo", {}), None)

    assert result.payload == {"echo": {"count": 3, "flag": False}}
    assert missing.error is not None
    assert missing.error["details"] == {"missing": ["count"]}


@pytest.mark.asyncio
async def test_handler_warnings_move_to_the_envelope() -> None:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        return {"value": 1, "__warnings__": ["careful"]}

    dispatcher = _dispatcher(ToolDescriptor(name="warn", handler=handler, requires_project=False))

    result = await dispatcher.execute(ToolCall("warn"), None)

    assert result.ok is True
    assert result.payload == {"value": 1}
    assert result.warnings == ("careful",)
    envelope = result.to_dict()
    assert envelope["warnings"] == ["careful"]
    assert "error" not in envelope


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        PathBlockedError(reason="Path traversal is blocked.", hint="Remove '..'."),
        PolicyBlockedError(reason="Path traversal is blocked.", hint="Remove '..'."),
    ],
)
async def test_sandbox_refusals_are_permission_denied(error: Exception) -> None:
    dispatcher = _dispatcher(
        ToolDescriptor(name="read", handler=_failing(error), requires_project=False)
    )

    result = await dispatcher.execute(ToolCall("read", {"filename": "../x"}), None)

    assert result.error == {
        "kind": "PermissionDenied",
        "message": "Path traversal is blocked.",
        "suggestion": "Remove '..'.",
    }


@pytest.mark.asyncio
async def test_tool_error_details_are_kept() -> None:
    error = Conflict("Content mismatch at lines 1-1.", details={"expected": "a", "actual": "b"})
    dispatcher = _dispatcher(
        ToolDescriptor(name="edit", handler=_failing(error), requires_project=False)
    )

    result = await dispatcher.execute(ToolCall("edit"), None)

    assert result.error is not None
    assert result.error["kind"] == "Conflict"
    assert result.error["details"] == {"expected": "a", "actual": "b"}


@pytest.mark.asyncio
async def test_unexpected_exceptions_become_internal_errors() -> None:
    dispatcher = _dispatcher(
        ToolDescriptor(name="boom", handler=_failing(RuntimeError("boom")), requires_project=False)
    )

    result = await dispatcher.execute(ToolCall("boom"), None, silent=True)

    assert result.error == {"kind": "InternalError", "message": "boom"}


@pytest.mark.asyncio
async def test_non_dict_results_are_internal_errors() -> None:
    async def handler(arguments: dict[str, object], workspace: Workspace | None) -> object:
        return ["not", "a", "dict"]

    dispatcher = _dispatcher(ToolDescriptor(name="bad", handler=handler, requires_project=False))

    result = await dispatcher.execute(ToolCall("bad"), None)

    assert result.error == {"kind": "InternalError", "message": "Tool 'bad' returned list."}


@pytest.mark.asyncio
async def test_slow_handlers_time_out() -> None:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        await asyncio.sleep(1)
        return {}

    dispatcher = _dispatcher(
        ToolDescriptor(name="slow", handler=handler, requires_project=False, timeout_seconds=0.05)
    )

    result = await dispatcher.execute(ToolCall("slow"), None)

    assert result.error is not None
    assert result.error["kind"] == "Timeout"
    assert result.error["message"] == "Tool 'slow' timed out after 0.05 seconds."


@pytest.mark.asyncio
async def test_handler_timeout_errors_are_not_mistaken_for_the_deadline() -> None:
    dispatcher = _dispatcher(
        ToolDescriptor(
            name="upstream", handler=_failing(TimeoutError("upstream")), requires_project=False
        )
    )

    result = await dispatcher.execute(ToolCall("upstream"), None, silent=True)

    assert result.error == {"kind": "InternalError", "message": "upstream"}


@pytest.mark.asyncio
async def test_amend_mode_refuses_full_rewrites() -> None:
    dispatcher = _dispatcher(
        ToolDescriptor(name="create_file", handler=_echo, requires_project=False),
        ToolDescriptor(name="edit_file", handler=_echo, requires_project=False),
        config=DispatcherConfig(mode="amend"),
    )

    whole = await dispatcher.execute(ToolCall("edit_file", {"content": "x"}), None)
    targeted = await dispatcher.execute(ToolCall("edit_file", {"edits": []}), None)
    created = await dispatcher.execute(ToolCall("create_file", {"content": "x"}), None)
    code_mode = await dispatcher.execute(ToolCall("edit_file", {"content": "x"}), None, mode="code")

    assert whole.error is not None and whole.error["kind"] == "Unsupported"
    assert targeted.ok is True
    assert targeted.recommendation is not None
    assert targeted.recommendation["recommended_tool"] == "apply_diff"
    assert created.ok is True
    assert code_mode.ok is True


@pytest.mark.asyncio
async def test_cacheable_results_are_served_from_cache() -> None:
    calls = 0

    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        nonlocal calls
        calls += 1
        return {"content": "v1"}

    dispatcher = _dispatcher(
        ToolDescriptor(name="read", handler=handler, requires_project=False, cacheable=True)
    )

    first = await dispatcher.execute(ToolCall("read", {"filename": "a.txt"}), None)
    second = await dispatcher.execute(ToolCall("read", {"filename": "a.txt"}), None)

    assert calls == 1
    assert (first.cached, second.cached) == (False, True)
    assert second.payload == first.payload
    assert second.to_dict()["cached"] is True


@pytest.mark.asyncio
async def test_mutating_tools_invalidate_even_when_they_fail() -> None:
    calls = 0

    async def read(arguments: dict[str, object], workspace: Workspace | None) -> dict[str, object]:
        nonlocal calls
        calls += 1
        return {"content": calls}

    dispatcher = _dispatcher(
        ToolDescriptor(name="read", handler=read, requires_project=False, cacheable=True),
        ToolDescriptor(
            name="write",
            handler=_failing(Conflict("stale")),
            requires_project=False,
            mutates=True,
        ),
    )

    await dispatcher.execute(ToolCall("read", {"filename": "a.txt"}), None)
    await dispatcher.execute(ToolCall("read", {"filename": "b.txt"}), None)
    await dispatcher.execute(ToolCall("write", {"filename": "./a.txt"}), None)
    again_a = await dispatcher.execute(ToolCall("read", {"filename": "a.txt"}), None)
    again_b = await dispatcher.execute(ToolCall("read", {"filename": "b.txt"}), None)

    assert again_a.cached is False
    assert again_b.cached is True
    assert calls == 3


@pytest.mark.asyncio
async def test_recurring_errors_gain_a_suggestion() -> None:
    dispatcher = _dispatcher(
        ToolDescriptor(
            name="apply_diff",
            handler=_failing(BadRequest("No valid diff blocks found. Debug info: none")),
            requires_project=False,
        )
    )

    results = [await dispatcher.execute(ToolCall("apply_diff"), None) for _ in range(3)]

    assert "alternative_tool" not in results[0].error
    assert results[2].error["alternative_tool"] == "read_file"
    assert "<<<<<<< SEARCH" in results[2].error["suggestion"]


@pytest.mark.asyncio
async def test_every_call_reaches_metrics_and_sinks() -> None:
    events: list[ToolCallEvent] = []

    class Collector:
        def record(self, event: ToolCallEvent) -> None:
            events.append(event)

    dispatcher = _dispatcher(
        ToolDescriptor(name="echo", handler=_echo, requires_project=False), sinks=[Collector()]
    )

    await dispatcher.execute(ToolCall("echo", {"filename": "src/app.JS"}), None)
    await dispatcher.execute(ToolCall("echo", request_id="given"), None)
    await dispatcher.execute(ToolCall("missing"), None)

    assert [event.request_id for event in events] == ["call-000001", "given", "call-000003"]
    assert events[0].file_type == "js"
    assert events[2].error_kind == "BadRequest"
    stats = dispatcher.metrics.for_tool("echo")
    assert stats is not None
    assert (stats.total_calls, stats.success_count) == (2, 2)


@pytest.mark.asyncio
async def test_checkpoint_taken_before_checkpointing_tools(tmp_path: Path) -> None:
    checkpoints = CheckpointStore(JsonStore(tmp_path / "store.json"))
    editor = HeadlessEditor()
    dispatcher = _dispatcher(
        ToolDescriptor(
            name="edit", handler=_echo, requires_project=False, creates_checkpoint=True
        ),
        checkpoints=checkpoints,
        editor=editor,
    )

    await dispatcher.execute(ToolCall("edit"), None)
    assert checkpoints.list() == []

    editor.open("a.py", "x = 1\n")
    await dispatcher.execute(ToolCall("edit"), None)

    latest = checkpoints.latest()
    assert latest is not None
    assert latest.name.startswith("Auto-Checkpoint @ ")
    assert latest.editor_state["open_files"] == [{"path": "a.py", "content": "x = 1\n"}]
