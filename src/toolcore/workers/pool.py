"""Offloads CPU-bound analysis to a concurrent.futures executor."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from concurrent.futures.thread import BrokenThreadPool
from dataclasses import dataclass

from toolcore.config import WorkersConfig
from toolcore.errors import ToolError, ToolTimeout, WorkerFailure
from toolcore.logging import get_logger
from toolcore.workers.tasks import run_task

TaskRunner = Callable[[str, dict[str, object]], dict[str, object]]

_BROKEN = (BrokenProcessPool, BrokenThreadPool)

logger = get_logger("workers")


@dataclass(slots=True, frozen=True)
class BatchJob:
    """One entry of :meth:`WorkerPool.execute_batch`."""

    kind: str
    payload: dict[str, object]


class WorkerPool:
    """Correlated, time-bounded job submission with an in-process fallback."""

    def __init__(self, config: WorkersConfig, runner: TaskRunner = run_task) -> None:
        self._config = config
        self._runner = runner
        self._executor: Executor | None = None
        self._pending: dict[str, asyncio.Future[dict[str, object]]] = {}
        self._failed_kinds: set[str] = set()
        self._counter = 0
        self._closed = False
        self._completed = 0
        self._failures = 0
        self._fallbacks = 0

    @property
    def pending_jobs(self) -> tuple[str, ...]:
        return tuple(self._pending)

    def mark_failed(self, kind: str) -> None:
        """Route future jobs of ``kind`` straight to WorkerFailure."""
        self._failed_kinds.add(kind)

    def mark_healthy(self, kind: str) -> None:
        self._failed_kinds.discard(kind)

    async def process_file(
        self, kind: str, payload: dict[str, object], timeout: float | None = None
    ) -> dict[str, object]:
        """Run one job on the executor and await its result."""
        if self._closed:
            raise WorkerFailure("Worker pool has been shut down.")
        if kind in self._failed_kinds:
            raise WorkerFailure(f"Worker for '{kind}' jobs is marked as failed.")
        job_id = self._next_job_id()
        budget = timeout if timeout is not None else self._config.timeout_seconds
        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(self._ensure_executor(), self._runner, kind, payload)
        except (*_BROKEN, RuntimeError) as error:
            self._discard_executor()
            self._failures += 1
            raise WorkerFailure(f"Worker pool could not accept job {job_id}: {error}") from error
        self._pending[job_id] = future
        try:
            result = await asyncio.wait_for(future, budget)
        except TimeoutError as error:
            self._failures += 1
            raise ToolTimeout(
                f"Worker job {job_id} ({kind}) timed out after {budget:g}s.",
                hint="Retry with a smaller input or a longer timeout.",
            ) from error
        except _BROKEN as error:
            self._discard_executor()
            self._failures += 1
            raise WorkerFailure(f"Worker crashed while running job {job_id} ({kind}).") from error
        finally:
            self._pending.pop(job_id, None)
        self._completed += 1
        return result

    async def run_with_fallback(
        self, kind: str, payload: dict[str, object], timeout: float | None = None
    ) -> dict[str, object]:
        """Prefer the pool; on WorkerFailure run the same job in-process."""
        try:
            return await self.process_file(kind, payload, timeout)
        except WorkerFailure as error:
            logger.warning("Worker fallback for {}: {}", kind, error.message)
        self._fallbacks += 1
        result = dict(self._runner(kind, payload))
        result["fallback"] = True
        return result

    async def parse_ast(
        self, content: str, path: str, options: dict[str, object] | None = None
    ) -> dict[str, object]:
        payload: dict[str, object] = {"content": content, "path": path, **(options or {})}
        return await self.process_file("parse_ast", payload)

    async def execute_batch(
        self, jobs: list[BatchJob], fallback: bool = True
    ) -> list[dict[str, object]]:
        """Run jobs concurrently; each entry reports its own success or error."""
        run = self.run_with_fallback if fallback else self.process_file
        outcomes = await asyncio.gather(
            *(run(job.kind, job.payload) for job in jobs), return_exceptions=True
        )
        results: list[dict[str, object]] = []
        for position, outcome in enumerate(outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, ToolError):
                results.append(
                    {
                        "job": position,
                        "ok": False,
                        "error": {"kind": outcome.kind, "message": outcome.message},
                    }
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append({"job": position, "ok": True, "result": outcome})
        return results

    def cancel(self, job_id: str) -> bool:
        future = self._pending.pop(job_id, None)
        if future is None:
            return False
        future.cancel()
        return True

    def cancel_all(self) -> int:
        cancelled = 0
        for job_id in list(self._pending):
            if self.cancel(job_id):
                cancelled += 1
        return cancelled

    def shutdown(self) -> None:
        """Cancel pending jobs and release the executor."""
        self.cancel_all()
        self._closed = True
        self._discard_executor()

    def stats(self) -> dict[str, object]:
        return {
            "mode": self._config.mode,
            "max_workers": self._config.max_workers,
            "pending": len(self._pending),
            "completed": self._completed,
            "failures": self._failures,
            "fallbacks": self._fallbacks,
            "failed_kinds": sorted(self._failed_kinds),
        }

    def _ensure_executor(self) -> Executor:
        if self._executor is None:
            if self._config.mode == "process":
                self._executor = ProcessPoolExecutor(max_workers=self._config.max_workers)
            else:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.max_workers, thread_name_prefix="toolcore-worker"
                )
        return self._executor

    def _discard_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def _next_job_id(self) -> str:
        self._counter += 1
        return f"job-{self._counter:06d}"
