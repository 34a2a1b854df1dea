import socket
import time

import pytest

from epollchat.context import ServerContext
from epollchat.messages import AdminMessage, ChatMessage, LoginRequest, LoginResponse
from epollchat.packet import Command, decode_header, encode_packet
from epollchat.server import ChatServer, main
from epollchat.users import User


class FakeDb:
    def __init__(self):
        self.accounts = {}

    def find_user_by_pw(self, user_id, password):
        account = self.accounts.get(user_id)
        if account is None or account.password != password:
            return None
        return User(id=account.id, name=account.name, uid=account.uid)


@pytest.fixture
def db():
    return FakeDb()


@pytest.fixture
def server(db):
    ctx = ServerContext.create(db)
    srv = ChatServer(ctx, host="127.0.0.1", port=0, workers=1, system_workers=1)
    srv.start()
    yield srv
    srv.close()


def pump(srv, condition, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        srv.poll(0.05)
        if condition():
            return True
    return False


def connect(srv):
    client = socket.create_connection(srv.address)
    assert pump(srv, lambda: len(srv.ctx.sessions) >= 1)
    return client


def read_packet(srv, client, timeout=3.0):
    buf = b""
    client.settimeout(0.05)
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        srv.poll(0.05)
        try:
            chunk = client.recv(4096)
        except socket.timeout:
            continue
        if not chunk:
            break
        buf += chunk
        if len(buf) >= 4:
            header = decode_header(buf)
            if len(buf) >= header.length:
                return header.command, buf[4:header.length]
    raise AssertionError("no complete packet received")


def test_accept_registers_session(server):
    client = connect(server)
    try:
        assert len(server.ctx.sessions) == 1
        session = next(iter(server.ctx.sessions))
        assert server.ctx.sessions.get(session.fd) is session
    finally:
        client.close()


def test_admin_message_gets_reply(server):
    client = connect(server)
    try:
        client.sendall(encode_packet(Command.ADMIN_BROADCAST, AdminMessage(message="hi").to_bytes()))
        command, body = read_packet(server, client)
        assert command == Command.CHAT_MESSAGE
        assert ChatMessage.from_bytes(body) == ChatMessage(name="kekek", message="nice to meet you!!!")
    finally:
        client.close()


def test_packet_split_across_reads(server):
    client = connect(server)
    try:
        packet = encode_packet(Command.ADMIN_BROADCAST, AdminMessage(message="split").to_bytes())
        client.sendall(packet[:3])
        server.poll(0.2)
        client.sendall(packet[3:])
        command, body = read_packet(server, client)
        assert command == Command.CHAT_MESSAGE
        assert ChatMessage.from_bytes(body).name == "kekek"
    finally:
        client.close()


def test_client_close_removes_session(server):
    client = connect(server)
    fd = next(iter(server.ctx.sessions)).fd
    client.close()
    pump(server, lambda: len(server.ctx.sessions) == 0)
    assert len(server.ctx.sessions) == 0
    assert server.ctx.sessions.get(fd) is None


def test_invalid_length_disconnects(server):
    client = connect(server)
    try:
        client.sendall(b"\xff\xff\x03\xe9")
        assert pump(server, lambda: len(server.ctx.sessions) == 0)
        client.settimeout(2.0)
        assert client.recv(16) == b""
    finally:
        client.close()


def test_login_and_logout(server, db):
    password = "password"
    db.accounts["alice"] = User(id="alice", password=password, name="Alice", uid=1000)
    client = connect(server)
    try:
        request = LoginRequest(id="alice", password=password)
        client.sendall(encode_packet(Command.LOGIN_REQUEST, request.to_bytes()))
        command, body = read_packet(server, client)
        response = LoginResponse.from_bytes(body)
        assert command == Command.LOGIN_RESPONSE
        assert response.success is True
        assert [u.id for u in response.users] == ["alice"]
        assert response.sender.uid == 1000
        assert server.ctx.users.count == 1
    finally:
        client.close()
    assert pump(server, lambda: server.ctx.users.count == 0)


def test_poll_without_events_returns_zero(server):
    assert server.poll(0) == 0


def test_start_twice_raises(server):
    with pytest.raises(RuntimeError):
        server.start()


def test_poll_before_start_raises(db):
    srv = ChatServer(ServerContext.create(db), host="127.0.0.1", port=0, workers=0, system_workers=0)
    with pytest.raises(RuntimeError):
        srv.poll(0)


def test_close_closes_client_sessions(db):
    srv = ChatServer(ServerContext.create(db), host="127.0.0.1", port=0, workers=1, system_workers=0)
    srv.start()
    client = connect(srv)
    try:
        srv.close()
        assert len(srv.ctx.sessions) == 0
        client.settimeout(2.0)
        assert client.recv(16) == b""
    finally:
        client.close()


def test_main_help_exits_cleanly():
    with pytest.raises(SystemExit) as info:
        main(["--help"])
    assert info.value.code == 0