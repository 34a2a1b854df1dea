"""Registry of logged-in users and user-level broadcasting."""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .packet import MAX_NAME_LEN
from .session import SessionManager

MAX_USER = 1024

_FIELD_LIMIT = MAX_NAME_LEN - 1


@dataclass
class User:
    """A user account; ``session_fd`` is -1 when not connected."""

    id: str = ""
    password: str = ""
    name: str = ""
    session_fd: int = -1
    uid: int = 0


class UserManager:
    """Logged-in users keyed by uid, in login order."""

    def __init__(
        self,
        on_leave: Optional[Callable[[User], None]] = None,
        max_users: int = MAX_USER,
    ) -> None:
        self._users: dict[int, User] = {}
        self._lock = threading.RLock()
        self._on_leave = on_leave
        self._max_users = max_users

    def __len__(self) -> int:
        return len(self._users)

    @property
    def count(self) -> int:
        return len(self._users)

    def add(self, user: User, session_fd: int) -> bool:
        """Register a copy of ``user`` on ``session_fd``.

        Returns False when the registry is full or the uid is already logged in.
        """
        with self._lock:
            if len(self._users) >= self._max_users or user.uid in self._users:
                return False
            self._users[user.uid] = User(
                id=user.id[:_FIELD_LIMIT],
                password=user.password[:_FIELD_LIMIT],
                name=user.name[:_FIELD_LIMIT],
                session_fd=session_fd,
                uid=user.uid,
            )
            return True

    def find(self, user_id: str) -> Optional[User]:
        with self._lock:
            return next((u for u in self._users.values() if u.id == user_id), None)

    def find_by_session(self, session_fd: int) -> Optional[User]:
        with self._lock:
            return next(
                (u for u in self._users.values() if u.session_fd == session_fd), None
            )

    def find_by_uid(self, uid: int) -> Optional[User]:
        with self._lock:
            return self._users.get(uid)

    def get_all(self) -> list[User]:
        """Snapshot of the logged-in users in login order."""
        with self._lock:
            return list(self._users.values())

    def logout(self, session_fd: int) -> Optional[User]:
        """Remove the user on ``session_fd`` and announce the departure."""
        with self._lock:
            user = self.find_by_session(session_fd)
            if user is None:
                return None
            del self._users[user.uid]
            departed = replace(user)
        if self._on_leave is not None:
            self._on_leave(departed)
        return departed

    def broadcast(self, sessions: SessionManager, data: bytes) -> None:
        """Send ``data`` to every logged-in user with a live session."""
        self._send_to(sessions, data, lambda user: True)

    def broadcast_except(self, except_fd: int, sessions: SessionManager, data: bytes) -> None:
        """Send ``data`` to every logged-in user except the one on ``except_fd``."""
        self._send_to(sessions, data, lambda user: user.session_fd != except_fd)

    def _send_to(self, sessions: SessionManager, data: bytes, wanted) -> None:
        for user in self.get_all():
            if user.session_fd == -1 or not wanted(user):
                continue
            session = sessions.get(user.session_fd)
            if session is None or session.fd == -1:
                continue
            try:
                session.sock.send(data)
            except OSError:
                continue