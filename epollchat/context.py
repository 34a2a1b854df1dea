"""Shared state of a running server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .drivers import DriverManager
from .sender import PacketSender
from .session import SessionManager
from .task_queue import TaskQueue
from .users import User, UserManager


@dataclass
class ServerContext:
    """Everything the connection handling and packet handlers share."""

    db: Any
    users: UserManager
    sessions: SessionManager
    drivers: DriverManager
    sender: PacketSender
    system_queue: TaskQueue = field(default_factory=TaskQueue)
    worker_queue: TaskQueue = field(default_factory=TaskQueue)
    leave_listeners: list[Callable[[User], None]] = field(default_factory=list)

    @classmethod
    def create(cls, db: Any, drivers: Optional[DriverManager] = None) -> "ServerContext":
        """Build a context around ``db``; user departures call every leave listener."""
        listeners: list[Callable[[User], None]] = []

        def announce_leave(user: User) -> None:
            for listener in list(listeners):
                listener(user)

        users = UserManager(on_leave=announce_leave)
        sessions = SessionManager()
        return cls(
            db=db,
            users=users,
            sessions=sessions,
            drivers=drivers if drivers is not None else DriverManager(),
            sender=PacketSender(sessions, users),
            leave_listeners=listeners,
        )