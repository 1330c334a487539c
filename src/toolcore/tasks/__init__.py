"""Task tree management."""

from .manager import PRIORITIES, STATUSES, Task, TaskManager, analyze_task_context

__all__ = ["PRIORITIES", "STATUSES", "Task", "TaskManager", "analyze_task_context"]
