import pytest

from epollchat.packet import BUFFER_SIZE
from epollchat.task_queue import (
    TASK_QUEUE_SIZE,
    QueueEmptyError,
    QueueFullError,
    Task,
    TaskQueue,
)


def test_fifo_order():
    queue = TaskQueue()
    tasks = [Task(fd, bytes([fd])) for fd in range(5)]
    for task in tasks:
        queue.enqueue(task)
    assert [queue.dequeue() for _ in tasks] == tasks
    assert queue.is_empty()


def test_new_queue_is_empty():
    queue = TaskQueue()
    assert queue.is_empty()
    assert not queue.is_full()
    assert len(queue) == 0


def test_capacity_is_one_less_than_size():
    queue = TaskQueue()
    for fd in range(TASK_QUEUE_SIZE - 1):
        queue.enqueue(Task(fd, b""))
    assert queue.is_full()
    with pytest.raises(QueueFullError):
        queue.enqueue(Task(999, b""))
    assert len(queue) == TASK_QUEUE_SIZE - 1


def test_dequeue_empty_raises():
    with pytest.raises(QueueEmptyError):
        TaskQueue().dequeue()


def test_wraparound_preserves_order():
    queue = TaskQueue()
    for fd in range(TASK_QUEUE_SIZE - 1):
        queue.enqueue(Task(fd, b""))
    drained = [queue.dequeue().target_fd for _ in range(50)]
    for fd in range(1000, 1050):
        queue.enqueue(Task(fd, b""))
    rest = []
    while not queue.is_empty():
        rest.append(queue.dequeue().target_fd)
    assert drained + rest == list(range(TASK_QUEUE_SIZE - 1)) + list(range(1000, 1050))


def test_task_len_matches_data():
    task = Task(3, b"abcd")
    assert task.len == len(b"abcd")


def test_task_rejects_oversized_data():
    with pytest.raises(ValueError):
        Task(1, bytes(BUFFER_SIZE + 1))


def test_task_accepts_full_buffer():
    task = Task(1, bytes(BUFFER_SIZE))
    assert task.len == BUFFER_SIZE