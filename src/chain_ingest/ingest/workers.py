"""
Bounded work queue and worker pool.

One producer submits work units; N long-running threads take them off a
bounded queue and hand each to a handler. A full queue blocks the
producer, which bounds memory however slow the remote stores are.

``drain()`` is the checkpoint barrier: it returns only once every unit
submitted so far has been handled to completion, not merely dequeued.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 20

# How often an idle worker checks the stop event
POLL_INTERVAL_SECONDS = 0.1


class WorkerPool(Generic[T]):
    """Fixed pool of threads draining a bounded queue.

    Usage:
        with WorkerPool(writer.write, workers=4) as pool:
            for unit in units:
                pool.submit(unit)
            pool.drain()
    """

    def __init__(
        self,
        handler: Callable[[T], object],
        *,
        workers: int = 4,
        capacity: int = DEFAULT_CAPACITY,
        name: str = "worker",
    ):
        """Initialize the pool.

        Args:
            handler: Processes one unit; should absorb its own retries
            workers: Number of worker threads
            capacity: Maximum units waiting in the queue
            name: Thread name prefix
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.handler = handler
        self.workers = workers
        self.capacity = capacity
        self.name = name

        self._queue: queue.Queue[T] = queue.Queue(maxsize=capacity)
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._counts_lock = threading.Lock()
        self.units_completed = 0
        self.units_failed = 0

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    @property
    def pending(self) -> int:
        """Units waiting in the queue (excludes units being handled)."""
        return self._queue.qsize()

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("WorkerPool already started")

        self._stop.clear()
        for i in range(self.workers):
            thread = threading.Thread(
                target=self._work,
                name=f"{self.name}-{i}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

        logger.debug("workers_started", pool=self.name, workers=self.workers)

    def submit(self, unit: T) -> None:
        """Enqueue a unit, blocking while the queue is full."""
        if not self._threads:
            raise RuntimeError("WorkerPool not started")
        if self._stop.is_set():
            raise RuntimeError("WorkerPool is stopping")
        self._queue.put(unit)

    def drain(self) -> None:
        """Block until every submitted unit has been handled."""
        self._queue.join()

    def stop(self, timeout: float | None = None) -> None:
        """Signal workers to exit once the queue is empty and wait for them.

        A unit already being handled always runs to completion.
        """
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.debug(
            "workers_stopped",
            pool=self.name,
            completed=self.units_completed,
            failed=self.units_failed,
        )

    def _work(self) -> None:
        while True:
            try:
                unit = self._queue.get(timeout=POLL_INTERVAL_SECONDS)
            except queue.Empty:
                if self._stop.is_set():
                    return
                continue

            try:
                self.handler(unit)
            except Exception as e:
                with self._counts_lock:
                    self.units_failed += 1
                logger.error(
                    "work_unit_failed",
                    pool=self.name,
                    unit=repr(unit),
                    error=str(e),
                    exc_info=True,
                )
            else:
                with self._counts_lock:
                    self.units_completed += 1
            finally:
                self._queue.task_done()

    def __enter__(self) -> WorkerPool[T]:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
