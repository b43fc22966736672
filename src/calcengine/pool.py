"""Async worker pool running computation tasks off the caller's event loop.

Each worker is a background coroutine that takes one queued task at a
time and runs it through a TaskDispatcher in a thread
(``asyncio.to_thread``), so CPU-heavy kernels never block the loop.
Callers get an awaitable PoolTask back from ``submit``.

Cancellation is cooperative: a queued task is removed from the queue
immediately, a running task has its CancelToken flipped and stops at the
kernel's next checkpoint.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Generator
from dataclasses import dataclass, replace
from typing import Any
from uuid import uuid4

from calcengine.cancellation import CancelToken
from calcengine.config import MAX_POOL_SIZE, MIN_POOL_SIZE, EngineSettings, WorkerSettings
from calcengine.dispatcher import TaskDispatcher
from calcengine.exceptions import PoolTerminatedError, TaskFailedError
from calcengine.logging import get_logger
from calcengine.models import ResponseType, TaskRequest, TaskResponse, TaskType

logger = get_logger(__name__)

ProgressListener = Callable[[float], None]


@dataclass
class WorkerStatus:
    """Snapshot of one worker's activity counters."""

    id: str
    busy: bool = False
    current_task: str | None = None
    completed_tasks: int = 0
    errors: int = 0


@dataclass
class _Job:
    request: TaskRequest
    future: asyncio.Future  # type: ignore[type-arg]
    token: CancelToken
    on_progress: ProgressListener | None = None


class PoolTask:
    """Handle for a submitted task. Await it for the result.

    Raises (when awaited):
        TaskFailedError: The engine answered with an error, or the task was cancelled.
        PoolTerminatedError: The pool stopped before the task finished.
    """

    def __init__(self, task_id: str, future: asyncio.Future, pool: WorkerPool) -> None:  # type: ignore[type-arg]
        self.task_id = task_id
        self._future = future
        self._pool = pool

    def __await__(self) -> Generator[Any, None, Any]:
        return self._future.__await__()

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> bool:
        """Cancel this task. Returns False if it already finished."""
        return self._pool.cancel(self.task_id)


class _Worker:
    def __init__(self, worker_id: str) -> None:
        self.status = WorkerStatus(id=worker_id)
        self.retired = False
        self.task: asyncio.Task | None = None  # type: ignore[type-arg]


class WorkerPool:
    """Fixed-size pool of computation workers.

    Args:
        settings: Pool size and default per-task timeout.
        engine_settings: Kernel tuning handed to every dispatcher.
    """

    def __init__(
        self,
        settings: WorkerSettings | None = None,
        engine_settings: EngineSettings | None = None,
    ) -> None:
        self._settings = settings or WorkerSettings()
        self._engine_settings = engine_settings or EngineSettings()
        self._pool_size = _clamp(self._settings.pool_size)
        self._workers: list[_Worker] = []
        self._retiring: set[_Worker] = set()
        self._queue: deque[_Job] = deque()
        self._active: dict[str, _Job] = {}
        self._wakeup: asyncio.Event | None = None
        self._running = False
        self._next_worker_id = 0

    async def __aenter__(self) -> WorkerPool:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Spawn the worker coroutines."""
        if self._running:
            logger.warning("worker_pool_already_running")
            return
        self._running = True
        self._wakeup = asyncio.Event()
        for _ in range(self._pool_size):
            self._spawn()
        logger.info("worker_pool_started", pool_size=self._pool_size)

    async def stop(self) -> None:
        """Stop all workers. Queued and running tasks fail with PoolTerminatedError."""
        if not self._running:
            return
        self._running = False

        while self._queue:
            job = self._queue.popleft()
            _fail(job, PoolTerminatedError("Worker pool terminated"))
        for job in list(self._active.values()):
            job.token.cancel()
            _fail(job, PoolTerminatedError("Worker pool terminated"))

        workers = [*self._workers, *self._retiring]
        self._workers = []
        self._retiring.clear()
        for worker in workers:
            if worker.task is not None:
                worker.task.cancel()
        for worker in workers:
            if worker.task is None:
                continue
            try:
                await worker.task
            except asyncio.CancelledError:
                pass
        self._active.clear()
        logger.info("worker_pool_stopped")

    def resize(self, new_size: int) -> None:
        """Grow or shrink the pool. Retired workers finish their current task first."""
        new_size = _clamp(new_size)
        if self._running:
            while len(self._workers) < new_size:
                self._spawn()
            while len(self._workers) > new_size:
                worker = self._workers.pop()
                worker.retired = True
                self._retiring.add(worker)
            assert self._wakeup is not None
            self._wakeup.set()
        logger.info("worker_pool_resized", old_size=self._pool_size, new_size=new_size)
        self._pool_size = new_size

    # -- submission ---------------------------------------------------------

    def submit(
        self,
        task_type: TaskType | str,
        payload: Any,
        on_progress: ProgressListener | None = None,
        timeout: float | None = None,
    ) -> PoolTask:
        """Queue a task and return its handle.

        Args:
            task_type: One of the TaskType values (unknown types are answered
                with an error, not rejected here).
            payload: Task-specific payload.
            on_progress: Called on the event loop with progress fractions.
            timeout: Seconds from submission before the task is cancelled.
                Defaults to ``WorkerSettings.task_timeout_seconds``.

        Raises:
            PoolTerminatedError: If the pool is not running.
        """
        if not self._running or self._wakeup is None:
            raise PoolTerminatedError("Worker pool is not running")

        raw_type = task_type.value if isinstance(task_type, TaskType) else str(task_type)
        request = TaskRequest(id=f"task-{uuid4().hex}", type=raw_type, payload=payload)
        future = asyncio.get_running_loop().create_future()
        if timeout is None:
            timeout = self._settings.task_timeout_seconds
        job = _Job(
            request=request,
            future=future,
            token=CancelToken(timeout),
            on_progress=on_progress,
        )
        self._queue.append(job)
        self._wakeup.set()
        return PoolTask(request.id, future, self)

    async def execute(
        self,
        task_type: TaskType | str,
        payload: Any,
        on_progress: ProgressListener | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Submit a task and wait for its result."""
        return await self.submit(task_type, payload, on_progress=on_progress, timeout=timeout)

    def cancel(self, task_id: str) -> bool:
        """Cancel a queued or running task.

        Returns:
            True if the task was queued or running, False if unknown or finished.
        """
        for job in self._queue:
            if job.request.id == task_id:
                self._queue.remove(job)
                _fail(job, TaskFailedError(task_id, "Task was cancelled"))
                logger.info("task_cancelled", task_id=task_id, state="queued")
                return True

        job = self._active.get(task_id)
        if job is not None:
            job.token.cancel()
            logger.info("task_cancelled", task_id=task_id, state="running")
            return True
        return False

    # -- introspection ------------------------------------------------------

    def status(self) -> list[WorkerStatus]:
        """Return a snapshot of every live worker's status."""
        return [replace(worker.status) for worker in self._workers]

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def active_task_count(self) -> int:
        return len(self._active)

    # -- internals ----------------------------------------------------------

    def _spawn(self) -> None:
        worker = _Worker(f"worker-{self._next_worker_id}")
        self._next_worker_id += 1
        worker.task = asyncio.create_task(self._worker_loop(worker))
        self._workers.append(worker)

    async def _worker_loop(self, worker: _Worker) -> None:
        assert self._wakeup is not None
        try:
            while self._running and not worker.retired:
                if not self._queue:
                    self._wakeup.clear()
                    await self._wakeup.wait()
                    continue
                await self._run(worker, self._queue.popleft())
        finally:
            self._retiring.discard(worker)

    async def _run(self, worker: _Worker, job: _Job) -> None:
        task_id = job.request.id
        if job.token.cancelled:
            worker.status.errors += 1
            _fail(job, TaskFailedError(task_id, "Task was cancelled"))
            return

        loop = asyncio.get_running_loop()

        def emit(response: TaskResponse) -> None:
            if response.type is ResponseType.PROGRESS and job.on_progress is not None:
                loop.call_soon_threadsafe(_notify, job, response.progress)

        dispatcher = TaskDispatcher(self._engine_settings, emit=emit)
        worker.status.busy = True
        worker.status.current_task = task_id
        self._active[task_id] = job
        try:
            response = await asyncio.to_thread(dispatcher.dispatch, job.request, job.token)
        finally:
            self._active.pop(task_id, None)
            worker.status.busy = False
            worker.status.current_task = None

        if response.type is ResponseType.RESULT:
            worker.status.completed_tasks += 1
            if not job.future.done():
                job.future.set_result(response.result)
        else:
            worker.status.errors += 1
            _fail(job, TaskFailedError(task_id, response.error or "Worker task failed"))


def _notify(job: _Job, progress: float | None) -> None:
    if job.future.done() or job.on_progress is None or progress is None:
        return
    try:
        job.on_progress(progress)
    except Exception:
        logger.warning("progress_listener_failed", task_id=job.request.id, exc_info=True)


def _fail(job: _Job, error: Exception) -> None:
    if not job.future.done():
        job.future.set_exception(error)


def _clamp(size: int) -> int:
    return max(MIN_POOL_SIZE, min(size, MAX_POOL_SIZE))
