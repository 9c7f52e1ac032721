"""
=============================================================================
WORKER POOL
=============================================================================

A fixed set of threads pulling connection jobs off a bounded queue.

    accept loop ──► submit(job) ──► ┌─────────────┐ ──► Worker-0
                                    │ task queue  │ ──► Worker-1
                                    │ (bounded)   │ ──► Worker-...
                                    └─────────────┘

Workers only do socket I/O concurrently; calls into the request handlers
are serialized by HTTPServer's dispatch lock, so the pool size bounds how
many slow clients can be waited on at once, not how many handlers run.

When the queue is full submit() returns False and the server answers 503.

Shutdown puts one sentinel per worker on the queue and joins them with a
deadline.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call: func(*args, **kwargs)."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)


class Worker(threading.Thread):
    """Runs tasks from the shared queue until it takes the None sentinel."""

    def __init__(self, tasks: "queue.Queue[Optional[Task]]", index: int):
        super().__init__(name=f"Worker-{index}", daemon=True)
        self.tasks = tasks
        self.state = WorkerState.IDLE

    def run(self):
        while True:
            task = self.tasks.get()
            try:
                if task is None:
                    break
                self._run_task(task)
            finally:
                self.tasks.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"{self.name} exited")

    def _run_task(self, task: Task):
        self.state = WorkerState.BUSY
        started = time.monotonic()
        try:
            task.func(*task.args, **task.kwargs)
        except Exception as e:
            logger.exception(
                f"{self.name}: task {getattr(task.func, '__name__', task.func)!s} "
                f"failed after {time.monotonic() - started:.3f}s: {e}"
            )
        finally:
            self.state = WorkerState.IDLE


class WorkerPool:
    """
    Fixed-size thread pool.

        pool = WorkerPool(workers=8)
        pool.start()
        pool.submit(handle_connection, conn)
        ...
        pool.shutdown(timeout=5.0)
    """

    def __init__(self, workers: int = 8, queue_size: int = 128):
        self.workers = workers
        self._tasks: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._threads: List[Worker] = []
        self._accepting = False

    @property
    def size(self) -> int:
        """Live worker threads."""
        return len(self._threads)

    @property
    def busy_count(self) -> int:
        return sum(1 for t in self._threads if t.state == WorkerState.BUSY)

    @property
    def queue_depth(self) -> int:
        return self._tasks.qsize()

    def start(self):
        if self._threads:
            return

        for index in range(self.workers):
            worker = Worker(self._tasks, index)
            worker.start()
            self._threads.append(worker)

        self._accepting = True
        logger.debug(f"Worker pool started with {self.workers} threads")

    def submit(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._accepting:
            raise RuntimeError("Worker pool is not running")

        try:
            self._tasks.put_nowait(Task(func, args, kwargs))
        except queue.Full:
            return False
        return True

    def shutdown(self, timeout: float = 5.0):
        """
        Stop taking work, let queued tasks finish, and join the workers.

        Args:
            timeout: Overall deadline for the workers to exit. Workers still
                busy after it are daemon threads and die with the process.
        """
        if not self._threads:
            return

        self._accepting = False
        for _ in self._threads:
            self._tasks.put(None)

        deadline = time.monotonic() + timeout
        for worker in self._threads:
            worker.join(max(deadline - time.monotonic(), 0))
            if worker.is_alive():
                logger.warning(f"{worker.name} still busy at shutdown")

        self._threads = []
        logger.debug("Worker pool stopped")
