"""Bounded FIFO of packets waiting to be dispatched."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from .packet import BUFFER_SIZE

TASK_QUEUE_SIZE = 128


class QueueFullError(Exception):
    """Raised when enqueueing onto a full queue."""


class QueueEmptyError(Exception):
    """Raised when dequeueing from an empty queue."""


@dataclass(frozen=True)
class Task:
    """A complete packet received on a connection."""

    target_fd: int
    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) > BUFFER_SIZE:
            raise ValueError(f"task data of {len(self.data)} bytes exceeds {BUFFER_SIZE}")

    @property
    def len(self) -> int:
        return len(self.data)


class TaskQueue:
    """A ring-style queue holding at most ``TASK_QUEUE_SIZE - 1`` tasks."""

    capacity = TASK_QUEUE_SIZE - 1

    def __init__(self) -> None:
        self._items: deque[Task] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def is_empty(self) -> bool:
        return not self._items

    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    def enqueue(self, task: Task) -> None:
        """Append a task; raise QueueFullError if there is no room."""
        if self.is_full():
            raise QueueFullError("task queue is full")
        self._items.append(task)

    def dequeue(self) -> Task:
        """Remove and return the oldest task; raise QueueEmptyError if none."""
        if not self._items:
            raise QueueEmptyError("task queue is empty")
        return self._items.popleft()