"""Task tree tools; none of them need an open workspace."""

from __future__ import annotations

from toolcore.errors import BadRequest
from toolcore.tasks import PRIORITIES, STATUSES
from toolcore.tools.registry import ToolDescriptor, ToolHandler
from toolcore.tools.schema import param
from toolcore.tools.services import ToolServices
from toolcore.workspace import Workspace


def task_tools(services: ToolServices) -> list[ToolDescriptor]:
    task_id = param("task_id", "string", "ID of the task, e.g. 'task-000001'.", required=True)
    return [
        ToolDescriptor(
            name="task_create",
            handler=_create_handler(services),
            requires_project=False,
            creates_checkpoint=True,
            description="Creates a new task. This is the starting point for any new goal.",
            parameters=(
                param("title", "string", "Short task title.", required=True),
                param("description", "string", "What needs to be done.", default=""),
                param("priority", "string", "Task priority.", enum=list(PRIORITIES)),
                param("parent_id", "string", "Parent task for a subtask."),
                param("list_id", "string", "Task list to file the task under."),
                param("dependencies", "array", "Task ids that must finish first.", items="string"),
                param("tags", "array", "Free-form labels.", items="string"),
            ),
        ),
        ToolDescriptor(
            name="task_update",
            handler=_update_handler(services),
            requires_project=False,
            creates_checkpoint=True,
            description=(
                "Updates an existing task. Provide both 'task_id' and 'updates', e.g. "
                "{task_id: 'task-000001', updates: {status: 'completed'}}."
            ),
            parameters=(
                task_id,
                param(
                    "updates",
                    "object",
                    "Fields to change: title, description, status "
                    f"({', '.join(STATUSES)}), priority, confidence, dependencies, tags, "
                    "context, estimated_time or notes.",
                    required=True,
                ),
            ),
        ),
        ToolDescriptor(
            name="task_delete",
            handler=_delete_handler(services),
            requires_project=False,
            creates_checkpoint=True,
            description="Deletes a task and all of its subtasks.",
            parameters=(task_id,),
        ),
        ToolDescriptor(
            name="task_breakdown",
            handler=_breakdown_handler(services),
            requires_project=False,
            creates_checkpoint=True,
            description="Breaks a high-level task down into specific, actionable subtasks.",
            parameters=(task_id,),
        ),
        ToolDescriptor(
            name="task_get_next",
            handler=_next_handler(services),
            requires_project=False,
            description="Fetches the next task to work on, based on priority and dependencies.",
        ),
        ToolDescriptor(
            name="task_get_status",
            handler=_status_handler(services),
            requires_project=False,
            description="Status of one task, or an overview of all tasks when no id is given.",
            parameters=(
                param("task_id", "string", "Task to check."),
                param("list_id", "string", "Restrict the overview to one task list."),
            ),
        ),
        ToolDescriptor(
            name="start_task_session",
            handler=_session_handler(services),
            requires_project=False,
            creates_checkpoint=True,
            description="Starts a tracked work session for a task.",
            parameters=(
                task_id,
                param("description", "string", "What this session is for.", default=""),
                param("duration", "integer", "Planned duration in minutes."),
            ),
        ),
    ]


def _create_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        parent_id = arguments.get("parent_id")
        list_id = arguments.get("list_id")
        task = services.tasks.create(
            title=str(arguments["title"]),
            description=str(arguments.get("description") or ""),
            priority=str(arguments.get("priority") or "medium"),
            parent_id=str(parent_id) if parent_id else None,
            list_id=str(list_id) if list_id else None,
            dependencies=[str(item) for item in arguments.get("dependencies") or []],
            tags=[str(item) for item in arguments.get("tags") or []],
        )
        return {
            "message": f"Task '{task.title}' created with ID {task.id}.",
            "task": task.to_dict(),
        }

    return handler


def _update_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        updates = arguments["updates"]
        if not isinstance(updates, dict) or not updates:
            raise BadRequest(
                "The 'updates' parameter must be an object with at least one field.",
                hint="For example: {\"status\": \"completed\"}.",
            )
        task = services.tasks.update(str(arguments["task_id"]), **updates)
        return {"message": f"Task {task.id} updated.", "task": task.to_dict()}

    return handler


def _delete_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        removed = services.tasks.delete(str(arguments["task_id"]))
        return {"message": f"Deleted {len(removed)} task(s).", "deleted": removed}

    return handler


def _breakdown_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        task_id = str(arguments["task_id"])
        subtasks = services.tasks.breakdown(task_id)
        return {
            "message": f"Task {task_id} broken down into {len(subtasks)} subtasks.",
            "subtasks": [task.to_dict() for task in subtasks],
        }

    return handler


def _next_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        task = services.tasks.get_next()
        if task is None:
            return {"message": "No pending tasks are ready to start.", "task": None}
        return {"message": f"Next task: {task.title}", "task": task.to_dict()}

    return handler


def _status_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        task_id = arguments.get("task_id")
        if task_id:
            task = services.tasks.require(str(task_id))
            return {"message": f"Task {task.id} is {task.status}.", "task": task.to_dict()}
        list_id = arguments.get("list_id")
        stats = services.tasks.stats(str(list_id) if list_id else None)
        return {
            "message": f"{stats['total']} task(s), {stats['completed']} completed.",
            "stats": stats,
        }

    return handler


def _session_handler(services: ToolServices) -> ToolHandler:
    async def handler(
        arguments: dict[str, object], workspace: Workspace | None
    ) -> dict[str, object]:
        task_id = str(arguments["task_id"])
        duration = arguments.get("duration")
        session = services.tasks.start_session(
            task_id,
            str(arguments.get("description") or ""),
            int(duration) if isinstance(duration, (int, float)) else None,
        )
        return {"message": f"Work session started for task {task_id}.", "session": session}

    return handler
