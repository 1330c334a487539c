"""Worker pool for CPU-bound analysis jobs."""

from .pool import BatchJob, WorkerPool
from .tasks import TASK_KINDS, run_task

__all__ = ["BatchJob", "TASK_KINDS", "WorkerPool", "run_task"]
