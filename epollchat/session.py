"""Table of connected client sockets, indexed by file descriptor."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from .recv_buffer import RecvBuffer

MAX_SESSIONS = 1024


@dataclass
class Session:
    """One connected client: its socket and its receive buffer."""

    fd: int
    sock: Any
    recv_buffer: RecvBuffer = field(default_factory=RecvBuffer)
    active: bool = True


class SessionManager:
    """Tracks active sessions for descriptors below ``MAX_SESSIONS``."""

    def __init__(self) -> None:
        self._sessions: dict[int, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self):
        with self._lock:
            return iter(sorted(self._sessions.values(), key=lambda s: s.fd))

    def add(self, fd: int, sock: Any) -> Session:
        """Register a new session; raise ValueError if ``fd`` is out of range."""
        if fd >= MAX_SESSIONS:
            raise ValueError(f"fd {fd} exceeds session limit {MAX_SESSIONS}")
        session = Session(fd, sock)
        with self._lock:
            self._sessions[fd] = session
        return session

    def remove(self, fd: int) -> Optional[Session]:
        """Deactivate the session on ``fd`` and close its socket."""
        if fd >= MAX_SESSIONS:
            return None
        with self._lock:
            session = self._sessions.pop(fd, None)
        if session is not None and session.active:
            session.active = False
            try:
                session.sock.close()
            except OSError:
                pass
        return session

    def get(self, fd: int) -> Optional[Session]:
        """Return the active session on ``fd``, or None."""
        if fd >= MAX_SESSIONS:
            return None
        session = self._sessions.get(fd)
        if session is None or not session.active:
            return None
        return session

    def send(self, fd: int, data: bytes) -> None:
        """Send ``data`` to one session.

        Raises KeyError if there is no such session and ConnectionError if
        the socket did not take every byte.
        """
        session = self.get(fd)
        if session is None or session.fd == -1:
            raise KeyError(fd)
        sent = session.sock.send(data)
        if sent != len(data):
            raise ConnectionError(f"sent {sent} of {len(data)} bytes to fd {fd}")

    def broadcast(self, data: bytes) -> None:
        """Send ``data`` to every active session, ignoring send failures."""
        with self._lock:
            targets = sorted(self._sessions.values(), key=lambda s: s.fd)
        for session in targets:
            if not session.active:
                continue
            if session.fd == -1:
                return
            try:
                session.sock.send(data)
            except OSError:
                continue