"""Hierarchical task tracking persisted in the key/value store."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass, field

from toolcore.errors import BadRequest, NotFound
from toolcore.logging import get_logger
from toolcore.storage import JsonStore

TASKS_KEY = "tasks"
SEQUENCE_KEY = "task_sequence"
DEFAULT_LIST_ID = "default"
STATUSES = ("pending", "in_progress", "completed", "failed")
PRIORITIES = ("low", "medium", "high", "urgent")
_PRIORITY_ORDER = {"urgent": 4, "high": 3, "medium": 2, "low": 1}
_RISK_ORDER = {"low": 1, "medium": 2, "high": 3}
_UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "confidence",
        "dependencies",
        "tags",
        "context",
        "estimated_time",
    }
)

_HIGH_RISK = re.compile(r"delete|remove|drop|destroy|critical|production|live")
_MEDIUM_RISK = re.compile(r"modify|change|update|edit|refactor")
_HIGH_COMPLEXITY = re.compile(r"system|architecture|framework|integration|complex|advanced")
_MEDIUM_COMPLEXITY = re.compile(r"multiple|several|various|different|across")

_BREAKDOWN_TEMPLATES: dict[str, tuple[tuple[str, str, str, int], ...]] = {
    "ui": (
        (
            "Locate relevant style and design files",
            "high",
            "Find the stylesheets and markup for the component",
            15,
        ),
        (
            "Analyze current design implementation",
            "high",
            "Review existing styles and design patterns",
            20,
        ),
        (
            "Apply requested design changes",
            "high",
            "Implement the specific design modifications",
            30,
        ),
        (
            "Test and verify visual changes",
            "medium",
            "Ensure the design changes work correctly",
            15,
        ),
    ),
    "file": (
        (
            "Scan and identify relevant project files",
            "high",
            "Locate all files related to the task",
            20,
        ),
        (
            "Analyze file contents and structure",
            "high",
            "Review the code and current implementation",
            30,
        ),
        ("Implement required changes", "high", "Make the necessary modifications to the files", 45),
        (
            "Validate changes work correctly",
            "medium",
            "Test that all changes function as expected",
            15,
        ),
    ),
    "code": (
        ("Understand code requirements", "high", "Analyze what needs to be implemented", 15),
        ("Design implementation approach", "high", "Plan the code structure and logic", 20),
        ("Write and implement code", "high", "Create the required functionality", 60),
        ("Test implementation", "medium", "Verify the code works correctly", 20),
    ),
    "generic": (
        ("Analyze the task requirements", "high", "Understand what needs to be done", 15),
        ("Plan execution approach", "high", "Determine the best way to accomplish the task", 20),
        ("Execute the main task", "high", "Perform the requested work", 60),
        ("Verify completion", "medium", "Ensure the task was completed successfully", 10),
    ),
}

logger = get_logger("tasks")


@dataclass(slots=True)
class Task:
    """One node of a task tree; times are epoch milliseconds."""

    id: str
    title: str
    description: str = ""
    status: str = "pending"
    priority: str = "medium"
    confidence: float = 1.0
    dependencies: list[str] = field(default_factory=list)
    subtasks: list[str] = field(default_factory=list)
    parent_id: str | None = None
    list_id: str = DEFAULT_LIST_ID
    tags: list[str] = field(default_factory=list)
    notes: list[dict[str, object]] = field(default_factory=list)
    context: dict[str, object] = field(default_factory=dict)
    created_time: int = 0
    updated_time: int = 0
    start_time: int | None = None
    completed_time: int | None = None
    estimated_time: int | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, object]) -> Task:
        known = {name: payload[name] for name in cls.__dataclass_fields__ if name in payload}
        return cls(**known)  # type: ignore[arg-type]


class TaskManager:
    """CRUD, breakdown and next-task selection over a persisted task map."""

    def __init__(self, store: JsonStore, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock
        self._tasks: dict[str, Task] = {}
        raw = store.get(TASKS_KEY, {})
        if isinstance(raw, dict):
            for task_id, payload in raw.items():
                if isinstance(payload, dict):
                    self._tasks[task_id] = Task.from_dict(payload)

    def _now(self) -> int:
        return int(self._clock() * 1000)

    def _next_id(self, prefix: str = "task") -> str:
        sequence = self._store.get(SEQUENCE_KEY, 0)
        sequence = (sequence if isinstance(sequence, int) else 0) + 1
        self._store.set(SEQUENCE_KEY, sequence)
        return f"{prefix}-{sequence:06d}"

    def _save(self) -> None:
        payload = {task_id: task.to_dict() for task_id, task in self._tasks.items()}
        self._store.set(TASKS_KEY, payload)

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound(
                f"Task not found: {task_id}", hint="Use task_get_status to list existing tasks."
            )
        return task

    def all(self, list_id: str | None = None) -> list[Task]:
        tasks = sorted(self._tasks.values(), key=lambda task: (task.created_time, task.id))
        if list_id is None:
            return tasks
        return [task for task in tasks if task.list_id == list_id]

    def create(
        self,
        title: str,
        description: str = "",
        priority: str = "medium",
        status: str = "pending",
        confidence: float = 1.0,
        dependencies: list[str] | None = None,
        parent_id: str | None = None,
        list_id: str | None = None,
        tags: list[str] | None = None,
        context: dict[str, object] | None = None,
        estimated_time: int | None = None,
    ) -> Task:
        if not title.strip():
            raise BadRequest("The 'title' parameter is required.")
        _check_choice("priority", priority, PRIORITIES)
        _check_choice("status", status, STATUSES)
        if not 0.0 <= confidence <= 1.0:
            raise BadRequest("Task confidence must be between 0.0 and 1.0.")
        parent = self.require(parent_id) if parent_id is not None else None
        for dependency in dependencies or []:
            self.require(dependency)
        now = self._now()
        task = Task(
            id=self._next_id(),
            title=title.strip(),
            description=description.strip(),
            status=status,
            priority=priority,
            confidence=confidence,
            dependencies=list(dependencies or []),
            parent_id=parent_id,
            list_id=list_id or (parent.list_id if parent is not None else DEFAULT_LIST_ID),
            tags=list(tags or []),
            context=dict(context or {}),
            created_time=now,
            updated_time=now,
            start_time=now if status == "in_progress" else None,
            estimated_time=estimated_time,
        )
        self._tasks[task.id] = task
        if parent is not None:
            parent.subtasks.append(task.id)
        self._save()
        logger.debug("Created task {}: {}", task.id, task.title)
        return task

    def update(self, task_id: str, **updates: object) -> Task:
        """Apply field updates; ``notes`` entries are appended, not replaced."""
        task = self.require(task_id)
        notes = updates.pop("notes", None)
        unknown = sorted(set(updates) - _UPDATABLE_FIELDS)
        if unknown:
            raise BadRequest(f"Unknown task field(s): {', '.join(unknown)}")
        if "status" in updates:
            _check_choice("status", updates["status"], STATUSES)
        if "priority" in updates:
            _check_choice("priority", updates["priority"], PRIORITIES)
        previous_status = task.status
        for name, value in updates.items():
            setattr(task, name, value)
        now = self._now()
        task.updated_time = now
        if task.status != previous_status:
            if task.status == "in_progress":
                task.start_time = now
            elif task.status in ("completed", "failed"):
                task.completed_time = now
        if isinstance(notes, list):
            for note in notes:
                text = note.get("content", "") if isinstance(note, dict) else note
                self._append_note(task, str(text), "system")
        elif isinstance(notes, str):
            self._append_note(task, notes, "system")
        self._save()
        return task

    def add_note(self, task_id: str, content: str, note_type: str = "user") -> dict[str, object]:
        task = self.require(task_id)
        note = self._append_note(task, content, note_type)
        task.updated_time = self._now()
        self._save()
        return note

    def _append_note(self, task: Task, content: str, note_type: str) -> dict[str, object]:
        note: dict[str, object] = {
            "id": f"note-{len(task.notes) + 1:04d}",
            "content": content.strip(),
            "type": note_type,
            "timestamp": self._now(),
        }
        task.notes.append(note)
        return note

    def delete(self, task_id: str) -> list[str]:
        """Delete a task and its subtasks recursively; returns removed ids."""
        task = self.require(task_id)
        removed: list[str] = []
        for subtask_id in list(task.subtasks):
            if subtask_id in self._tasks:
                removed.extend(self.delete(subtask_id))
        parent = self._tasks.get(task.parent_id) if task.parent_id else None
        if parent is not None:
            parent.subtasks = [item for item in parent.subtasks if item != task_id]
        del self._tasks[task_id]
        removed.append(task_id)
        self._save()
        return removed

    def breakdown(self, task_id: str) -> list[Task]:
        """Split a task into chained subtasks from contextual templates."""
        task = self.require(task_id)
        risk, complexity = analyze_task_context(task.title, task.description)
        template = _BREAKDOWN_TEMPLATES[_template_key(task.title)]
        subtasks: list[Task] = []
        previous: str | None = None
        for title, priority, description, minutes in template:
            subtask = self.create(
                title=title,
                description=description,
                priority=priority,
                parent_id=task.id,
                dependencies=[previous] if previous else [],
                tags=["subtask", "fallback"],
                context={
                    **task.context,
                    "method": "fallback",
                    "risk_level": risk,
                    "complexity": complexity,
                },
                estimated_time=minutes,
            )
            subtasks.append(subtask)
            previous = subtask.id
        total = sum(item.estimated_time or 0 for item in subtasks)
        self.update(
            task.id,
            status="in_progress",
            estimated_time=total,
            context={
                **task.context,
                "breakdown": {
                    "method": "fallback",
                    "subtask_count": len(subtasks),
                    "total_estimated_time": total,
                },
            },
            notes=[f"Task broken down into {len(subtasks)} subtasks (estimated time: {total}min)"],
        )
        return subtasks

    def get_next(self) -> Task | None:
        """Highest-priority pending task whose dependencies are all completed."""
        pending = [task for task in self._tasks.values() if task.status == "pending"]
        pending.sort(
            key=lambda task: (
                -_PRIORITY_ORDER.get(task.priority, 0),
                -(task.confidence or 0.5),
                _RISK_ORDER.get(str(task.context.get("risk_level")), 2),
                task.created_time,
                task.id,
            )
        )
        for task in pending:
            if all(
                (dependency := self._tasks.get(dep_id)) is not None
                and dependency.status == "completed"
                for dep_id in task.dependencies
            ):
                return task
        return None

    def stats(self, list_id: str | None = None) -> dict[str, int]:
        tasks = self.all(list_id)
        counts = {status: 0 for status in STATUSES}
        for task in tasks:
            counts[task.status] = counts.get(task.status, 0) + 1
        return {"total": len(tasks), **counts}

    def start_session(
        self, task_id: str, description: str = "", duration: int | None = None
    ) -> dict[str, object]:
        task = self.require(task_id)
        session: dict[str, object] = {
            "id": self._next_id("session"),
            "task_id": task_id,
            "description": description,
            "start_time": self._now(),
            "end_time": None,
            "duration": duration,
            "active": True,
        }
        sessions = task.context.get("sessions")
        task.context["sessions"] = [*sessions, session] if isinstance(sessions, list) else [session]
        if task.status != "in_progress":
            self.update(task_id, status="in_progress")
        note = "Started work session"
        if description:
            note += f": {description}"
        if duration:
            note += f" (planned duration: {duration} minutes)"
        self.add_note(task_id, note, "system")
        return session


def analyze_task_context(title: str, description: str) -> tuple[str, str]:
    """Return (risk_level, complexity) from keywords in the task text."""
    combined = f"{title} {description}".lower()
    risk = "low"
    if _HIGH_RISK.search(combined):
        risk = "high"
    elif _MEDIUM_RISK.search(combined):
        risk = "medium"
    complexity = "low"
    if _HIGH_COMPLEXITY.search(combined):
        complexity = "high"
    elif _MEDIUM_COMPLEXITY.search(combined):
        complexity = "medium"
    return risk, complexity


def _template_key(title: str) -> str:
    lowered = title.lower()
    if any(word in lowered for word in ("color", "design", "style", "dashboard")):
        return "ui"
    if "file" in lowered or "review all" in lowered:
        return "file"
    if any(word in lowered for word in ("code", "implement", "function")):
        return "code"
    return "generic"


def _check_choice(name: str, value: object, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise BadRequest(f"Task {name} must be one of: {', '.join(choices)}.")
