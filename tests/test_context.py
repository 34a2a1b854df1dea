from epollchat.context import ServerContext
from epollchat.drivers import DEV_FILE_BMP, DEV_FILE_LCD, DriverManager, DriverType
from epollchat.task_queue import Task
from epollchat.users import User


class FakeSocket:
    def __init__(self):
        self.sent = []

    def send(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def close(self):
        pass


def test_create_starts_empty():
    db = object()
    ctx = ServerContext.create(db)
    assert ctx.db is db
    assert len(ctx.users) == 0
    assert len(ctx.sessions) == 0
    assert ctx.worker_queue.is_empty()
    assert ctx.system_queue.is_empty()


def test_default_drivers_use_device_files():
    ctx = ServerContext.create(object())
    assert ctx.drivers.paths[DriverType.BMP180] == DEV_FILE_BMP
    assert ctx.drivers.paths[DriverType.LCD1602] == DEV_FILE_LCD


def test_given_drivers_are_kept():
    drivers = DriverManager({DriverType.BMP180: "/tmp/sensor"})
    ctx = ServerContext.create(object(), drivers)
    assert ctx.drivers is drivers


def test_sender_shares_sessions_and_users():
    ctx = ServerContext.create(object())
    assert ctx.sender.sessions is ctx.sessions
    assert ctx.sender.users is ctx.users


def test_queues_are_independent():
    ctx = ServerContext.create(object())
    ctx.worker_queue.enqueue(Task(3, b"\x00\x04\x03\xe9"))
    assert len(ctx.worker_queue) == 1
    assert ctx.system_queue.is_empty()


def test_logout_notifies_leave_listeners():
    ctx = ServerContext.create(object())
    departed = []
    ctx.leave_listeners.append(departed.append)
    ctx.sessions.add(5, FakeSocket())
    ctx.users.add(User(id="alice", name="Alice", uid=1001), 5)
    ctx.users.logout(5)
    assert [(u.id, u.uid) for u in departed] == [("alice", 1001)]
    assert len(ctx.users) == 0


def test_contexts_do_not_share_listeners():
    first = ServerContext.create(object())
    second = ServerContext.create(object())
    first.leave_listeners.append(print)
    assert second.leave_listeners == []