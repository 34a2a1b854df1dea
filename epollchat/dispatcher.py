"""Routing of complete packets to their handlers."""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional

from .handlers import PacketHandler
from .messages import DecodeError
from .packet import PACKET_HEADER_SIZE, Command, decode_header

log = logging.getLogger(__name__)

_Route = Optional[Callable[[PacketHandler, int, bytes], None]]

_WORKER_ROUTES: dict[Command, _Route] = {
    Command.CHAT_MESSAGE: PacketHandler.handle_chat_message,
    Command.LOGIN_REQUEST: PacketHandler.handle_login_request,
    Command.LOGIN_RESPONSE: PacketHandler.handle_login_response,
    Command.JOIN_REQUEST: PacketHandler.handle_join_request,
    Command.CHANGE_NAME_REQUEST: PacketHandler.handle_change_name_request,
    Command.CHAT_COMMAND: PacketHandler.handle_chat_command,
    Command.ADMIN_BROADCAST: PacketHandler.handle_admin_message,
}

_SYSTEM_ROUTES: dict[Command, _Route] = {
    Command.CHAT_MESSAGE: PacketHandler.handle_chat_message,
    Command.LOGIN_REQUEST: None,
    Command.ADMIN_BROADCAST: None,
}


def _dispatch(routes: Mapping[Command, _Route], handler: PacketHandler, fd: int, data: bytes) -> bool:
    if len(data) < PACKET_HEADER_SIZE:
        return False
    header = decode_header(data)
    if header.length != len(data):
        return False
    log.debug("receive packet cmd %d", header.command)
    try:
        command = Command(header.command)
    except ValueError:
        command = None
    if command not in routes:
        log.warning("invalid packet cmd %d (%d)", header.command, fd)
        return False
    route = routes[command]
    if route is None:
        return False
    try:
        route(handler, fd, bytes(data[PACKET_HEADER_SIZE:]))
    except DecodeError as exc:
        log.warning("cannot decode cmd %d from fd=%d: %s", header.command, fd, exc)
        return False
    return True


def worker_dispatch(handler: PacketHandler, fd: int, data: bytes) -> bool:
    """Handle a packet received from a client; return whether a handler ran."""
    return _dispatch(_WORKER_ROUTES, handler, fd, data)


def system_dispatch(handler: PacketHandler, fd: int, data: bytes) -> bool:
    """Handle a packet queued by the server itself; return whether a handler ran."""
    return _dispatch(_SYSTEM_ROUTES, handler, fd, data)