"""Per-connection accumulation buffer that cuts a byte stream into packets."""

from __future__ import annotations

import struct
from collections.abc import Iterator

from .packet import PacketError

RECV_BUFFER_SIZE = 4096

_LENGTH = struct.Struct("!H")


class BufferOverflowError(Exception):
    """Raised when appended data would exceed the buffer capacity."""


class RecvBuffer:
    """Accumulates stream data and yields complete length-prefixed packets.

    Space taken by consumed packets is reclaimed only once every buffered
    byte has been consumed.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._read = 0

    def __len__(self) -> int:
        return len(self._data) - self._read

    def reset(self) -> None:
        """Discard everything buffered."""
        self._data.clear()
        self._read = 0

    def append(self, data: bytes) -> None:
        """Add received bytes; raise BufferOverflowError if they do not fit."""
        if len(self._data) + len(data) > RECV_BUFFER_SIZE:
            raise BufferOverflowError(
                f"appending {len(data)} bytes exceeds {RECV_BUFFER_SIZE}-byte buffer"
            )
        self._data += data

    def extract_packet(self) -> bytes | None:
        """Return the next complete packet, or None if it has not fully arrived."""
        available = len(self)
        if available < _LENGTH.size:
            return None
        (total,) = _LENGTH.unpack_from(self._data, self._read)
        if total > RECV_BUFFER_SIZE or total < _LENGTH.size:
            raise PacketError(f"invalid packet length {total}")
        if available < total:
            return None
        packet = bytes(self._data[self._read:self._read + total])
        self._read += total
        if self._read == len(self._data):
            self.reset()
        return packet

    def packets(self) -> Iterator[bytes]:
        """Yield every complete packet currently buffered."""
        while (packet := self.extract_packet()) is not None:
            yield packet