import pytest

from epollchat.messages import AdminMessage, ChatMessage
from epollchat.packet import PACKET_HEADER_SIZE, Command, PacketError, decode_header
from epollchat.sender import PacketSender
from epollchat.session import SessionManager
from epollchat.users import User, UserManager


class FakeSocket:
    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def close(self):
        self.closed = True


@pytest.fixture
def sender():
    return PacketSender(SessionManager(), UserManager())


def connect(sender, fd):
    sock = FakeSocket()
    sender.sessions.add(fd, sock)
    return sock


def login(sender, fd, uid):
    sock = connect(sender, fd)
    assert sender.users.add(User(id=f"user{uid}", name=f"User {uid}", uid=uid), fd)
    return sock


def test_build_empty_message_is_bare_header(sender):
    assert sender.build(Command.CHAT_MESSAGE, ChatMessage()) == b"\x00\x04\x03\xe9"


def test_build_round_trip(sender):
    message = ChatMessage(name="alice", message="hello")
    packet = sender.build(Command.CHAT_MESSAGE, message)
    header = decode_header(packet)
    assert header.length == len(packet)
    assert header.command == Command.CHAT_MESSAGE
    assert ChatMessage.from_bytes(packet[PACKET_HEADER_SIZE:]) == message


def test_build_rejects_oversized_body(sender):
    with pytest.raises(PacketError):
        sender.build(Command.CHAT_MESSAGE, ChatMessage(message="x" * 600))


def test_send_reaches_one_session(sender):
    first = connect(sender, 5)
    second = connect(sender, 6)
    message = ChatMessage(name="a", message="b")
    sender.send(5, Command.CHAT_MESSAGE, message)
    assert first.sent == [sender.build(Command.CHAT_MESSAGE, message)]
    assert second.sent == []


def test_send_to_unknown_session_raises(sender):
    with pytest.raises(KeyError):
        sender.send(9, Command.CHAT_MESSAGE, ChatMessage())


def test_broadcast_sessions_reaches_everyone(sender):
    anonymous = connect(sender, 5)
    logged_in = login(sender, 6, 1001)
    sender.broadcast_sessions(Command.CHAT_MESSAGE, ChatMessage(message="hi"))
    assert len(anonymous.sent) == 1
    assert anonymous.sent == logged_in.sent


def test_broadcast_users_skips_anonymous_sessions(sender):
    anonymous = connect(sender, 5)
    logged_in = login(sender, 6, 1001)
    sender.broadcast_users(Command.CHAT_MESSAGE, ChatMessage(message="hi"))
    assert anonymous.sent == []
    assert len(logged_in.sent) == 1


def test_broadcast_users_except_skips_one(sender):
    first = login(sender, 5, 1001)
    second = login(sender, 6, 1002)
    sender.broadcast_users_except(Command.CHAT_MESSAGE, ChatMessage(message="hi"), 5)
    assert first.sent == []
    assert len(second.sent) == 1


def test_system_notice_is_admin_broadcast(sender):
    sock = login(sender, 5, 1001)
    sender.system_notice("maintenance")
    (packet,) = sock.sent
    assert decode_header(packet).command == Command.ADMIN_BROADCAST
    assert AdminMessage.from_bytes(packet[PACKET_HEADER_SIZE:]).message == "maintenance"