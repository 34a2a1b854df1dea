"""Queues of received packets and the threads that dispatch them."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .task_queue import QueueEmptyError, Task, TaskQueue

log = logging.getLogger(__name__)

MAX_THREADS = 5

Dispatch = Callable[[int, bytes], object]


class TaskChannel:
    """A task queue guarded by a condition, consumed by dispatching threads."""

    def __init__(self, dispatch: Dispatch, queue: Optional[TaskQueue] = None) -> None:
        self.queue = queue if queue is not None else TaskQueue()
        self._dispatch = dispatch
        self._cond = threading.Condition()
        self._stopped = threading.Event()

    def __len__(self) -> int:
        with self._cond:
            return len(self.queue)

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def enqueue(self, task: Task) -> None:
        """Queue a task and wake one consumer; raise QueueFullError if there is no room."""
        with self._cond:
            try:
                self.queue.enqueue(task)
            finally:
                self._cond.notify()

    def dequeue(self, timeout: Optional[float] = None) -> Task:
        """Wait for and remove the oldest task.

        Raises QueueEmptyError if none arrives within ``timeout`` seconds or
        the channel is stopped while waiting.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: not self.queue.is_empty() or self._stopped.is_set(), timeout
            )
            if self.queue.is_empty():
                raise QueueEmptyError("no task available")
            return self.queue.dequeue()

    def run_once(self, timeout: Optional[float] = None) -> Optional[Task]:
        """Dispatch one task; return it, or None if none arrived in time."""
        try:
            task = self.dequeue(timeout)
        except QueueEmptyError:
            return None
        try:
            self._dispatch(task.target_fd, task.data)
        except Exception:
            log.exception("dispatch failed for fd=%d", task.target_fd)
        return task

    def run_forever(self) -> None:
        """Dispatch tasks until the channel is stopped."""
        while not self._stopped.is_set():
            self.run_once()

    def stop(self) -> None:
        """Make every consumer return from ``run_forever``."""
        self._stopped.set()
        with self._cond:
            self._cond.notify_all()


def start_threads(count: int, target: Callable[[], object]) -> list[threading.Thread]:
    """Start ``count`` daemon threads running ``target`` and return them."""
    if not 0 <= count <= MAX_THREADS:
        raise ValueError(f"thread count must be between 0 and {MAX_THREADS}, got {count}")
    threads = []
    for _ in range(count):
        thread = threading.Thread(target=target, daemon=True)
        thread.start()
        threads.append(thread)
    return threads