from __future__ import annotations

from pathlib import Path

from toolcore.editor import HeadlessEditor
from toolcore.history import CheckpointStore
from toolcore.server import STORE_FILE_NAME, ToolCoreServer, create_server
from toolcore.storage import JsonStore


def _call(server: ToolCoreServer, name: str, **arguments: object) -> dict[str, object]:
    params = {"name": name, "arguments": arguments}
    return server.handle_payload({"id": f"req-{name}", "method": "tools/call", "params": params})


def _payload(response: dict[str, object]) -> dict[str, object]:
    assert response["ok"] is True, response.get("error")
    return response["result"]["payload"]


def test_task_workflow_without_workspace(tmp_path: Path) -> None:
    data_dir = str(tmp_path / "data")
    server = create_server(repo_root=None, data_dir=data_dir)

    created = _payload(_call(server, "task_create", title="Write release notes"))
    parent_id = created["task"]["id"]
    broken_down = _payload(_call(server, "task_breakdown", task_id=parent_id))
    subtask_ids = [task["id"] for task in broken_down["subtasks"]]
    first_next = _payload(_call(server, "task_get_next"))
    _payload(_call(server, "task_update", task_id=subtask_ids[0], updates={"status": "completed"}))
    second_next = _payload(_call(server, "task_get_next"))
    overview = _payload(_call(server, "task_get_status"))
    session = _payload(
        _call(
            server, "start_task_session", task_id=subtask_ids[1], description="draft", duration=30
        )
    )

    reopened = create_server(repo_root=None, data_dir=data_dir)
    persisted = _payload(_call(reopened, "task_get_status", task_id=subtask_ids[0]))
    reopened.close()

    deleted = _payload(_call(server, "task_delete", task_id=parent_id))
    missing = _call(server, "task_get_status", task_id=parent_id)
    server.close()

    assert parent_id == "task-000001"
    assert created["message"] == "Task 'Write release notes' created with ID task-000001."
    assert broken_down["message"] == (
        f"Task {parent_id} broken down into {len(subtask_ids)} subtasks."
    )
    assert first_next["task"]["id"] == subtask_ids[0]
    assert second_next["task"]["id"] == subtask_ids[1]
    assert overview["stats"]["total"] == len(subtask_ids) + 1
    assert overview["stats"]["completed"] == 1
    assert session["session"]["task_id"] == subtask_ids[1]
    assert session["session"]["duration"] == 30
    assert persisted["task"]["status"] == "completed"
    assert sorted(deleted["deleted"]) == sorted([parent_id, *subtask_ids])
    assert missing["error"]["code"] == "NotFound"


def test_task_argument_errors(tmp_path: Path) -> None:
    server = create_server(repo_root=None, data_dir=str(tmp_path / "data"))
    task_id = _payload(_call(server, "task_create", title="Triage"))["task"]["id"]

    urgent = _call(server, "task_create", title="Other", priority="urgent")
    empty = _call(server, "task_update", task_id=task_id, updates={})
    unknown = _call(server, "task_update", task_id=task_id, updates={"owner": "sam"})
    untitled = _call(server, "task_create")
    next_task = _payload(_call(server, "task_get_next"))
    server.close()

    assert urgent["error"]["code"] == "BadRequest"
    assert urgent["error"]["message"].startswith("Invalid value for 'priority' in task_create")
    assert empty["error"]["code"] == "BadRequest"
    assert unknown["error"]["message"] == "Unknown task field(s): owner"
    assert untitled["result"]["error"]["details"] == {"missing": ["title"]}
    assert next_task["task"]["id"] == task_id


def test_task_changes_checkpoint_open_editor_files(tmp_path: Path) -> None:
    editor = HeadlessEditor()
    editor.open("notes.md", "draft\n")
    data_dir = tmp_path / "data"
    server = create_server(repo_root=None, data_dir=str(data_dir), editor=editor)

    created = _payload(_call(server, "task_create", title="Ship it"))
    _payload(_call(server, "task_get_status", task_id=created["task"]["id"]))
    server.close()

    checkpoints = CheckpointStore(JsonStore(data_dir / STORE_FILE_NAME)).list()
    assert len(checkpoints) == 1
    assert checkpoints[0].editor_state["open_files"] == [
        {"path": "notes.md", "content": "draft\n"}
    ]
