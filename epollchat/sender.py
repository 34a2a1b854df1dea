"""Framing and delivery of outgoing messages to sessions and users."""

from __future__ import annotations

import logging

from .messages import AdminMessage, Message
from .packet import Command, encode_packet
from .session import SessionManager
from .users import UserManager

log = logging.getLogger(__name__)


class PacketSender:
    """Serializes messages into packets and sends them over the session table."""

    def __init__(self, sessions: SessionManager, users: UserManager) -> None:
        self.sessions = sessions
        self.users = users

    def build(self, command: int, message: Message) -> bytes:
        """Frame ``message`` as a packet; raise PacketError if its body is too large."""
        return encode_packet(command, message.to_bytes())

    def send(self, fd: int, command: int, message: Message) -> None:
        """Send one packet to the session on ``fd``.

        Raises PacketError for an oversized body, KeyError for an unknown
        session and ConnectionError for a short send.
        """
        packet = self.build(command, message)
        log.debug("send packet cmd %d", command)
        self.sessions.send(fd, packet)

    def broadcast_sessions(self, command: int, message: Message) -> None:
        """Send one packet to every active session, logged in or not."""
        packet = self.build(command, message)
        log.debug("send session broadcast packet cmd %d", command)
        self.sessions.broadcast(packet)

    def broadcast_users(self, command: int, message: Message) -> None:
        """Send one packet to every logged-in user."""
        packet = self.build(command, message)
        log.debug("send user broadcast packet cmd %d", command)
        self.users.broadcast(self.sessions, packet)

    def broadcast_users_except(self, command: int, message: Message, except_fd: int) -> None:
        """Send one packet to every logged-in user except the one on ``except_fd``."""
        packet = self.build(command, message)
        log.debug("send user broadcast packet cmd %d", command)
        self.users.broadcast_except(except_fd, self.sessions, packet)

    def system_notice(self, message: str) -> None:
        """Announce an administrator notice to every logged-in user."""
        self.broadcast_users(Command.ADMIN_BROADCAST, AdminMessage(message=message))