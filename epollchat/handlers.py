"""Handling of each packet a client can send."""

from __future__ import annotations

import logging
from typing import Optional

from .context import ServerContext
from .db import DatabaseError
from .drivers import DriverError, DriverType
from .messages import (
    AdminMessage,
    ChangeNameNotice,
    ChangeNameRequest,
    ChangeNameResponse,
    ChatCommand,
    ChatMessage,
    JoinNotice,
    JoinRequest,
    JoinResponse,
    LeaveNotice,
    LoginRequest,
    LoginResponse,
    Message,
    UserInfo,
)
from .packet import CMD_BMP, CMD_LCD, CMD_NAME, MAX_NAME_LEN, Command, PacketError
from .users import User

log = logging.getLogger(__name__)

_NAME_LIMIT = MAX_NAME_LEN - 1

MSG_COMMAND_FAILED = "command failed"
MSG_DUPLICATE_LOGIN = "중벅 로그인.."
MSG_AUTH_FAILED = "db 인증 실패.."
MSG_INVALID_JOIN = "Invalid input (empty id/password/name)"
MSG_ID_DUPLICATION = "ID duplication"
MSG_USER_FIND_FAILED = "User Find Failed"
MSG_LOGIN_FAILED = "Faild login"

ADMIN_REPLY_NAME = "kekek"
ADMIN_REPLY_TEXT = "nice to meet you!!!"


def _user_info(user: User) -> UserInfo:
    return UserInfo(id=user.id, name=user.name, uid=user.uid)


class PacketHandler:
    """Acts on decoded client packets against a server context.

    Each handler raises DecodeError when the body cannot be decoded.
    """

    def __init__(self, ctx: ServerContext) -> None:
        self.ctx = ctx
        ctx.leave_listeners.append(self.send_leave_notify)

    def _send(self, fd: int, command: int, message: Message) -> None:
        try:
            self.ctx.sender.send(fd, command, message)
        except (KeyError, OSError, PacketError) as exc:
            log.warning("could not send cmd %d to fd=%d: %s", command, fd, exc)

    def _broadcast(self, command: int, message: Message, except_fd: Optional[int] = None) -> None:
        try:
            if except_fd is None:
                self.ctx.sender.broadcast_users(command, message)
            else:
                self.ctx.sender.broadcast_users_except(command, message, except_fd)
        except PacketError as exc:
            log.warning("could not broadcast cmd %d: %s", command, exc)

    def _online_users(self) -> list[UserInfo]:
        return [_user_info(user) for user in self.ctx.users.get_all()]

    def _find_account(self, user_id: str, password: str) -> Optional[User]:
        try:
            return self.ctx.db.find_user_by_pw(user_id, password)
        except DatabaseError as exc:
            log.warning("account lookup failed: %s", exc)
            return None

    def handle_chat_message(self, fd: int, body: bytes) -> None:
        """Relay a chat line to every logged-in user."""
        msg = ChatMessage.from_bytes(body)
        self._broadcast(Command.CHAT_MESSAGE, ChatMessage(name=msg.name, message=msg.message))

    def handle_chat_command(self, fd: int, body: bytes) -> None:
        """Run a device command; a prefix of a command name selects it."""
        text = ChatCommand.from_bytes(body).message
        if CMD_BMP.startswith(text):
            try:
                reading = self.ctx.drivers.read(DriverType.BMP180)
            except DriverError as exc:
                log.warning("sensor read failed: %s", exc)
                self._send(fd, Command.CHAT_MESSAGE, ChatMessage(name=CMD_NAME, message=MSG_COMMAND_FAILED))
            else:
                self._broadcast(Command.CHAT_MESSAGE, ChatMessage(name=CMD_NAME, message=reading))
        elif CMD_LCD.startswith(text):
            status = f"User Count, {self.ctx.users.count}"
            try:
                self.ctx.drivers.write(DriverType.LCD1602, status)
            except DriverError as exc:
                log.warning("display write failed: %s", exc)
                status = MSG_COMMAND_FAILED
            self._send(fd, Command.CHAT_MESSAGE, ChatMessage(name=CMD_NAME, message=status))

    def handle_login_request(self, fd: int, body: bytes) -> None:
        """Authenticate, register the user and answer with the online list."""
        msg = LoginRequest.from_bytes(body)
        response = LoginResponse(success=False)
        account = self._find_account(msg.id, msg.password)
        if account is None:
            response.message = MSG_AUTH_FAILED
        elif not self.ctx.users.add(account, fd):
            response.message = MSG_DUPLICATE_LOGIN
        else:
            response.success = True
            response.sender = _user_info(account)
            response.users = self._online_users()

        self._send(fd, Command.LOGIN_RESPONSE, response)
        if response.success:
            self.send_join_notice(account, fd)

    def handle_login_response(self, fd: int, body: bytes) -> None:
        """Clients do not send login responses; the packet is logged and dropped."""
        log.debug("ignoring login response from fd=%d (%d bytes)", fd, len(body))

    def handle_join_request(self, fd: int, body: bytes) -> None:
        """Create an account, log it in and answer with the online list."""
        msg = JoinRequest.from_bytes(body)

        def fail(reason: str) -> None:
            self._send(fd, Command.JOIN_RESPONSE, JoinResponse(success=False, message=reason))

        if not msg.id or not msg.password or not msg.name:
            fail(MSG_INVALID_JOIN)
            return
        try:
            created = self.ctx.db.insert_user(msg.id, msg.password, msg.name)
        except DatabaseError as exc:
            log.warning("account creation failed: %s", exc)
            created = False
        if not created:
            fail(MSG_ID_DUPLICATION)
            return
        account = self._find_account(msg.id, msg.password)
        if account is None:
            fail(MSG_USER_FIND_FAILED)
            return
        if not self.ctx.users.add(account, fd):
            fail(MSG_LOGIN_FAILED)
            return

        response = JoinResponse(
            success=True,
            sender=UserInfo(id=msg.id, name=msg.name),
            users=self._online_users(),
        )
        self._send(fd, Command.JOIN_RESPONSE, response)
        self.send_join_notice(account, fd)

    def handle_admin_message(self, fd: int, body: bytes) -> None:
        """Log an administrator message and greet the sender."""
        msg = AdminMessage.from_bytes(body)
        log.info("[Admin] Message: %s", msg.message)
        self._send(fd, Command.CHAT_MESSAGE, ChatMessage(name=ADMIN_REPLY_NAME, message=ADMIN_REPLY_TEXT))

    def handle_change_name_request(self, fd: int, body: bytes) -> None:
        """Rename the user on ``fd`` in the database and announce the change."""
        req = ChangeNameRequest.from_bytes(body)
        user = self.ctx.users.find_by_session(fd)
        if user is None:
            log.warning("user not found for session %d", fd)
            return
        old_name = user.name[:_NAME_LIMIT]
        try:
            self.ctx.db.update_user_name(user.uid, req.new_name)
        except DatabaseError as exc:
            log.warning("change name db failed %d: %s", fd, exc)
            return
        user.name = req.new_name[:_NAME_LIMIT]

        self._send(fd, Command.CHANGE_NAME_RESPONSE, ChangeNameResponse(success=True, new_name=user.name))
        notice = ChangeNameNotice(success=True, sender=_user_info(user), old_name=old_name)
        self._broadcast(Command.CHANGE_NAME_NOTIFY, notice)

    def send_join_notice(self, user: User, except_fd: int) -> None:
        """Tell every other logged-in user that ``user`` has joined."""
        notice = JoinNotice(success=True, sender=_user_info(user))
        self._broadcast(Command.JOIN_NOTIFY, notice, except_fd)

    def send_leave_notify(self, user: User) -> None:
        """Tell every logged-in user that ``user`` has left."""
        self._broadcast(Command.LEAVE_NOTIFY, LeaveNotice(success=True, sender=_user_info(user)))