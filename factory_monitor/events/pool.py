"""
Bounded asyncio worker pool.

WorkerPool runs submitted coroutine functions on a fixed set of core
workers, growing up to max_size extra workers while a backlog exists. The
queue is bounded: when it is full, submit() rejects the task and logs it
instead of blocking the caller or growing without limit.

Example:
    >>> pool = WorkerPool("notifications", core_size=2, max_size=5, queue_capacity=100)
    >>> pool.submit(dispatcher.handle, event)
    True
    >>> await pool.shutdown(grace_seconds=10)
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

import structlog

from factory_monitor.config.models import PoolConfig
from factory_monitor.exceptions import QueueSaturatedError

logger = structlog.get_logger(__name__)

TaskFn = Callable[..., Awaitable[Any]]
_QueueItem = Tuple[TaskFn, Tuple[Any, ...], str]


class WorkerPool:
    """
    Bounded pool of asyncio workers.

    Attributes:
        name: Pool name used in logs.
        core_size: Workers that live for the pool's lifetime.
        max_size: Upper bound on concurrent workers.
        queue_capacity: Bounded queue size.
        idle_timeout_seconds: How long an extra worker waits for work
            before retiring.
    """

    def __init__(
        self,
        name: str,
        core_size: int,
        max_size: int,
        queue_capacity: int,
        idle_timeout_seconds: float = 30.0,
    ) -> None:
        if core_size < 1 or max_size < core_size:
            raise ValueError(
                f"invalid pool sizing: core_size={core_size}, max_size={max_size}"
            )
        if queue_capacity < 1:
            raise ValueError(f"queue_capacity must be >= 1, got {queue_capacity}")

        self.name = name
        self.core_size = core_size
        self.max_size = max_size
        self.queue_capacity = queue_capacity
        self.idle_timeout_seconds = idle_timeout_seconds

        self._queue: Optional[asyncio.Queue] = None
        self._workers: Set[asyncio.Task] = set()
        self._idle = 0
        self._accepting = True
        self._started = False

        self.submitted = 0
        self.completed = 0
        self.failed = 0
        self.rejected = 0
        self.dropped = 0

    @classmethod
    def from_config(cls, name: str, config: PoolConfig) -> "WorkerPool":
        """Build a pool from its configuration section."""
        return cls(
            name=name,
            core_size=config.core_size,
            max_size=config.max_size,
            queue_capacity=config.queue_capacity,
        )

    @property
    def worker_count(self) -> int:
        """Number of live workers."""
        return len(self._workers)

    @property
    def queue_size(self) -> int:
        """Number of queued tasks not yet picked up."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def is_accepting(self) -> bool:
        """Check if the pool still accepts submissions."""
        return self._accepting

    def start(self) -> None:
        """Spawn the core workers. Must be called from a running event loop."""
        if self._started:
            return
        self._queue = asyncio.Queue(maxsize=self.queue_capacity)
        self._started = True
        for _ in range(self.core_size):
            self._spawn(core=True)
        logger.debug(
            "worker_pool_started",
            pool=self.name,
            core_size=self.core_size,
            max_size=self.max_size,
            queue_capacity=self.queue_capacity,
        )

    def _spawn(self, core: bool) -> None:
        task = asyncio.create_task(self._worker(core))
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    def submit(
        self,
        fn: TaskFn,
        *args: Any,
        label: Optional[str] = None,
        strict: bool = False,
    ) -> bool:
        """
        Enqueue fn(*args) without blocking.

        Args:
            fn: Coroutine function to run.
            *args: Arguments passed to fn.
            label: Task label used in logs.
            strict: Raise QueueSaturatedError instead of returning False
                when the queue is full.

        Returns:
            bool: True if accepted, False if rejected.
        """
        task_label = label or getattr(fn, "__qualname__", repr(fn))

        if not self._accepting:
            self.rejected += 1
            logger.warning("task_rejected_shutting_down", pool=self.name, task=task_label)
            return False

        self.start()
        assert self._queue is not None

        try:
            self._queue.put_nowait((fn, args, task_label))
        except asyncio.QueueFull:
            self.rejected += 1
            logger.warning(
                "task_rejected_queue_full",
                pool=self.name,
                task=task_label,
                capacity=self.queue_capacity,
            )
            if strict:
                raise QueueSaturatedError(self.name, self.queue_capacity) from None
            return False

        self.submitted += 1

        if self._idle == 0 and len(self._workers) < self.max_size:
            self._spawn(core=False)
            logger.debug(
                "worker_pool_grew",
                pool=self.name,
                workers=len(self._workers),
                backlog=self._queue.qsize(),
            )
        return True

    async def _worker(self, core: bool) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            self._idle += 1
            try:
                if core:
                    item: _QueueItem = await queue.get()
                else:
                    try:
                        item = await asyncio.wait_for(
                            queue.get(), timeout=self.idle_timeout_seconds
                        )
                    except asyncio.TimeoutError:
                        return
            finally:
                self._idle -= 1

            fn, args, task_label = item
            try:
                await fn(*args)
                self.completed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failed += 1
                logger.error(
                    "task_failed",
                    pool=self.name,
                    task=task_label,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            finally:
                queue.task_done()

    async def shutdown(self, grace_seconds: float) -> int:
        """
        Stop intake, wait up to grace_seconds for queued work, drop the rest.

        Args:
            grace_seconds: Upper bound on the wait for queued and in-flight tasks.

        Returns:
            int: Number of queued tasks dropped.
        """
        self._accepting = False
        if self._queue is None:
            return 0

        queue = self._queue
        try:
            await asyncio.wait_for(queue.join(), timeout=grace_seconds)
        except asyncio.TimeoutError:
            pass

        dropped = 0
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            queue.task_done()
            dropped += 1
        self.dropped += dropped

        workers = list(self._workers)
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        log = logger.warning if dropped else logger.info
        log(
            "worker_pool_shutdown",
            pool=self.name,
            dropped=dropped,
            completed=self.completed,
            failed=self.failed,
            rejected=self.rejected,
        )
        return dropped

    def stats(self) -> Dict[str, Any]:
        """Counters and current sizes."""
        return {
            "pool": self.name,
            "workers": self.worker_count,
            "queue_size": self.queue_size,
            "submitted": self.submitted,
            "completed": self.completed,
            "failed": self.failed,
            "rejected": self.rejected,
            "dropped": self.dropped,
        }
