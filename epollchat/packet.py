"""Packet framing: a 4-byte header (total length, command) in network byte order, then a body."""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import NamedTuple

BUFFER_SIZE = 512
MAX_NAME_LEN = 64
PACKET_HEADER_SIZE = 4
MAX_BODY_SIZE = BUFFER_SIZE - PACKET_HEADER_SIZE

CMD_NAME = "[COMMAND]"
CMD_BMP = "/bmp180"
CMD_LCD = "/lcd1602"
CMD_BH = "/bh1750"

_HEADER = struct.Struct("!HH")


class Command(IntEnum):
    """Packet command codes."""

    CHAT_MESSAGE = 1001
    LOGIN_REQUEST = 1002
    LOGIN_RESPONSE = 1003
    JOIN_REQUEST = 1004
    JOIN_RESPONSE = 1005
    JOIN_NOTIFY = 1006
    LEAVE_NOTIFY = 1007
    CHANGE_NAME_REQUEST = 1010
    CHANGE_NAME_RESPONSE = 1011
    CHANGE_NAME_NOTIFY = 1012
    CHAT_COMMAND = 1013
    ADMIN_BROADCAST = 2000


class PacketError(ValueError):
    """Raised for malformed or oversized packets."""


class Header(NamedTuple):
    """A decoded packet header."""

    length: int
    command: int


def encode_packet(command: int, body: bytes = b"") -> bytes:
    """Frame ``body`` with a header carrying its total length and ``command``."""
    body = bytes(body)
    if len(body) > MAX_BODY_SIZE:
        raise PacketError(f"body of {len(body)} bytes exceeds {MAX_BODY_SIZE}")
    code = int(command)
    if not 0 <= code <= 0xFFFF:
        raise PacketError(f"command {code} does not fit in 16 bits")
    return _HEADER.pack(PACKET_HEADER_SIZE + len(body), code) + body


def decode_header(data: bytes) -> Header:
    """Read the length and command from the start of ``data``."""
    if len(data) < PACKET_HEADER_SIZE:
        raise PacketError(f"need {PACKET_HEADER_SIZE} header bytes, got {len(data)}")
    length, command = _HEADER.unpack_from(data)
    return Header(length, command)