"""The listening socket, readiness loop and connection handling."""

from __future__ import annotations

import argparse
import logging
import selectors
import socket
import threading
from typing import Optional

from .context import ServerContext
from .db import DatabaseError, UserDatabase
from .dispatcher import worker_dispatch
from .handlers import PacketHandler
from .packet import BUFFER_SIZE, PacketError
from .recv_buffer import BufferOverflowError
from .task_queue import QueueFullError, Task
from .tasks import TaskChannel, start_threads

log = logging.getLogger(__name__)

DB_URI = "mongodb://10.10.16.8:27017"
DB_NAME = "epoll"
PORT = 9000
WORKER_THREAD_COUNT = 4
SYSTEM_THREAD_COUNT = 1


class ChatServer:
    """Accepts clients, cuts their streams into packets and hands them to workers."""

    def __init__(
        self,
        ctx: ServerContext,
        host: str = "",
        port: int = PORT,
        workers: int = WORKER_THREAD_COUNT,
        system_workers: int = SYSTEM_THREAD_COUNT,
    ) -> None:
        self.ctx = ctx
        self.host = host
        self.port = port
        self.handler = PacketHandler(ctx)
        self.worker_channel = TaskChannel(self._dispatch, ctx.worker_queue)
        self.system_channel = TaskChannel(self._dispatch, ctx.system_queue)
        self._workers = workers
        self._system_workers = system_workers
        self._threads: list[threading.Thread] = []
        self._selector: Optional[selectors.BaseSelector] = None
        self._listener: Optional[socket.socket] = None
        self._closed = False

    def _dispatch(self, fd: int, data: bytes) -> None:
        worker_dispatch(self.handler, fd, data)

    @property
    def address(self) -> tuple:
        """The address the listening socket is bound to."""
        if self._listener is None:
            raise RuntimeError("server is not started")
        return self._listener.getsockname()

    def start(self) -> tuple:
        """Bind the listening socket, start the dispatch threads and return the address."""
        if self._listener is not None:
            raise RuntimeError("server already started")
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.setblocking(False)
            listener.bind((self.host, self.port))
            listener.listen(socket.SOMAXCONN)
        except OSError:
            listener.close()
            raise
        self._listener = listener
        self._selector = selectors.DefaultSelector()
        self._selector.register(listener, selectors.EVENT_READ)
        self._threads += start_threads(self._workers, self.worker_channel.run_forever)
        self._threads += start_threads(self._system_workers, self.system_channel.run_forever)
        log.info("Server running on port %d", self.address[1])
        return self.address

    def accept(self) -> Optional[int]:
        """Accept one pending client and return its descriptor, or None."""
        if self._listener is None or self._selector is None:
            raise RuntimeError("server is not started")
        try:
            sock, _ = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return None
        sock.setblocking(False)
        fd = sock.fileno()
        try:
            self.ctx.sessions.add(fd, sock)
        except ValueError as exc:
            log.warning("rejecting client: %s", exc)
            sock.close()
            return None
        self._selector.register(sock, selectors.EVENT_READ)
        log.info("New client fd=%d", fd)
        return fd

    def handle_read(self, fd: int) -> None:
        """Drain the client's socket, queueing every complete packet."""
        session = self.ctx.sessions.get(fd)
        if session is None:
            return
        while True:
            try:
                chunk = session.sock.recv(BUFFER_SIZE)
            except (BlockingIOError, InterruptedError):
                return
            except OSError as exc:
                log.warning("read error on fd=%d: %s", fd, exc)
                self._disconnect(fd)
                return
            if not chunk:
                self._disconnect(fd)
                return
            try:
                session.recv_buffer.append(chunk)
            except BufferOverflowError as exc:
                log.warning("fd=%d: %s", fd, exc)
                continue
            try:
                for packet in session.recv_buffer.packets():
                    self._queue_packet(fd, packet)
            except PacketError as exc:
                log.warning("Invalid packet from fd=%d: %s", fd, exc)
                self._disconnect(fd)
                return

    def _queue_packet(self, fd: int, packet: bytes) -> None:
        try:
            task = Task(fd, packet)
        except ValueError as exc:
            log.warning("dropping packet from fd=%d: %s", fd, exc)
            return
        try:
            self.worker_channel.enqueue(task)
        except QueueFullError:
            log.warning("Worker queue full!")

    def _disconnect(self, fd: int) -> None:
        if self._selector is not None:
            try:
                self._selector.unregister(fd)
            except (KeyError, ValueError):
                pass
        self.ctx.users.logout(fd)
        self.ctx.sessions.remove(fd)
        log.info("Client disconnected fd=%d", fd)

    def poll(self, timeout: Optional[float] = None) -> int:
        """Wait for readiness once, handle what is ready and return the event count."""
        if self._selector is None or self._listener is None:
            raise RuntimeError("server is not started")
        events = self._selector.select(timeout)
        for key, _ in events:
            if key.fileobj is self._listener:
                self.accept()
            else:
                self.handle_read(key.fd)
        return len(events)

    def serve_forever(self) -> None:
        """Start if needed and handle events until closed."""
        if self._listener is None:
            self.start()
        while not self._closed:
            self.poll(0.5)

    def close(self) -> None:
        """Stop the dispatch threads and close every socket."""
        self._closed = True
        self.worker_channel.stop()
        self.system_channel.stop()
        for thread in self._threads:
            thread.join(timeout=1.0)
        self._threads.clear()
        for session in list(self.ctx.sessions):
            self.ctx.sessions.remove(session.fd)
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __enter__(self) -> "ChatServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def main(argv: Optional[list] = None) -> int:
    """Run the chat server until interrupted."""
    parser = argparse.ArgumentParser(prog="epollchat", description="Run the chat server.")
    parser.add_argument("--host", default="", help="address to listen on")
    parser.add_argument("--port", type=int, default=PORT, help="port to listen on")
    parser.add_argument("--db-uri", default=DB_URI, help="MongoDB connection URI")
    parser.add_argument("--db-name", default=DB_NAME, help="MongoDB database name")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        db = UserDatabase.connect(args.db_uri, args.db_name)
    except DatabaseError as exc:
        log.error("%s", exc)
        return 1

    ctx = ServerContext.create(db)
    try:
        with ChatServer(ctx, host=args.host, port=args.port) as server:
            server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        ctx.drivers.close()
        db.close()
    return 0