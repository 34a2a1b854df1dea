"""Message bodies exchanged with clients, in protobuf wire format."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class DecodeError(ValueError):
    """Raised when a message body cannot be decoded."""


class _Kind(Enum):
    STRING = "string"
    BOOL = "bool"
    INT32 = "int32"


@dataclass(frozen=True)
class _Field:
    number: int
    name: str
    kind: Any
    repeated: bool = False


_WIRE_VARINT = 0
_WIRE_FIXED64 = 1
_WIRE_LEN = 2
_WIRE_FIXED32 = 5

_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _tag(number: int, wire: int) -> bytes:
    return _varint((number << 3) | wire)


def _len_delimited(number: int, payload: bytes) -> bytes:
    return _tag(number, _WIRE_LEN) + _varint(len(payload)) + payload


def _is_default(kind: Any, value: Any) -> bool:
    if kind is _Kind.STRING:
        return value == ""
    if kind is _Kind.BOOL:
        return not value
    if kind is _Kind.INT32:
        return value == 0
    return value is None


def _encode_value(spec: _Field, value: Any) -> bytes:
    kind = spec.kind
    if kind is _Kind.STRING:
        return _len_delimited(spec.number, value.encode("utf-8"))
    if kind is _Kind.BOOL:
        return _tag(spec.number, _WIRE_VARINT) + _varint(1 if value else 0)
    if kind is _Kind.INT32:
        if not _INT32_MIN <= value <= _INT32_MAX:
            raise ValueError(f"{spec.name}={value} does not fit in int32")
        return _tag(spec.number, _WIRE_VARINT) + _varint(value % (1 << 64))
    return _len_delimited(spec.number, value.to_bytes())


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def done(self) -> bool:
        return self._pos >= len(self._data)

    def varint(self) -> int:
        result = 0
        for shift in range(0, 70, 7):
            if self._pos >= len(self._data):
                raise DecodeError("truncated varint")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
        raise DecodeError("varint too long")

    def take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise DecodeError("truncated field")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def skip(self, wire: int) -> None:
        if wire == _WIRE_VARINT:
            self.varint()
        elif wire == _WIRE_FIXED64:
            self.take(8)
        elif wire == _WIRE_LEN:
            self.take(self.varint())
        elif wire == _WIRE_FIXED32:
            self.take(4)
        else:
            raise DecodeError(f"unsupported wire type {wire}")


def _decode_value(kind: Any, reader: _Reader) -> Any:
    if kind is _Kind.BOOL:
        return reader.varint() != 0
    if kind is _Kind.INT32:
        raw = reader.varint() & 0xFFFFFFFF
        return raw - (1 << 32) if raw & 0x80000000 else raw
    payload = reader.take(reader.varint())
    if kind is _Kind.STRING:
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError("string field is not valid UTF-8") from exc
    return kind.from_bytes(payload)


class Message:
    """Base for messages; subclasses list their wire fields in ``_fields``."""

    _fields: tuple = ()

    def to_bytes(self) -> bytes:
        """Serialize to protobuf wire format, omitting default scalar values."""
        out = bytearray()
        for spec in self._fields:
            value = getattr(self, spec.name)
            if spec.repeated:
                for item in value:
                    out += _encode_value(spec, item)
            elif not _is_default(spec.kind, value):
                out += _encode_value(spec, value)
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes):
        """Parse protobuf wire bytes; unknown fields are skipped."""
        by_number = {spec.number: spec for spec in cls._fields}
        values: dict[str, Any] = {}
        reader = _Reader(data)
        while not reader.done:
            key = reader.varint()
            number, wire = key >> 3, key & 0x7
            if number == 0:
                raise DecodeError("field number 0 is invalid")
            spec = by_number.get(number)
            if spec is None:
                reader.skip(wire)
                continue
            expected = _WIRE_VARINT if spec.kind in (_Kind.BOOL, _Kind.INT32) else _WIRE_LEN
            if wire != expected:
                raise DecodeError(f"field {spec.name} has wire type {wire}, expected {expected}")
            value = _decode_value(spec.kind, reader)
            if spec.repeated:
                values.setdefault(spec.name, []).append(value)
            else:
                values[spec.name] = value
        return cls(**values)


@dataclass
class UserInfo(Message):
    """A user as shown to clients."""

    id: str = ""
    name: str = ""
    uid: int = 0

    _fields = (
        _Field(1, "id", _Kind.STRING),
        _Field(2, "name", _Kind.STRING),
        _Field(3, "uid", _Kind.INT32),
    )


@dataclass
class ChatMessage(Message):
    name: str = ""
    message: str = ""

    _fields = (
        _Field(1, "name", _Kind.STRING),
        _Field(2, "message", _Kind.STRING),
    )


@dataclass
class ChatCommand(Message):
    message: str = ""

    _fields = (_Field(1, "message", _Kind.STRING),)


@dataclass
class LoginRequest(Message):
    id: str = ""
    password: str = ""

    _fields = (
        _Field(1, "id", _Kind.STRING),
        _Field(2, "password", _Kind.STRING),
    )


@dataclass
class LoginResponse(Message):
    success: bool = False
    message: str = ""
    sender: Optional[UserInfo] = None
    users: list[UserInfo] = field(default_factory=list)

    _fields = (
        _Field(1, "success", _Kind.BOOL),
        _Field(2, "message", _Kind.STRING),
        _Field(3, "sender", UserInfo),
        _Field(4, "users", UserInfo, repeated=True),
    )


@dataclass
class JoinRequest(Message):
    id: str = ""
    password: str = ""
    name: str = ""

    _fields = (
        _Field(1, "id", _Kind.STRING),
        _Field(2, "password", _Kind.STRING),
        _Field(3, "name", _Kind.STRING),
    )


@dataclass
class JoinResponse(Message):
    success: bool = False
    message: str = ""
    sender: Optional[UserInfo] = None
    users: list[UserInfo] = field(default_factory=list)

    _fields = (
        _Field(1, "success", _Kind.BOOL),
        _Field(2, "message", _Kind.STRING),
        _Field(3, "sender", UserInfo),
        _Field(4, "users", UserInfo, repeated=True),
    )


@dataclass
class JoinNotice(Message):
    success: bool = False
    sender: Optional[UserInfo] = None

    _fields = (
        _Field(1, "success", _Kind.BOOL),
        _Field(2, "sender", UserInfo),
    )


@dataclass
class LeaveNotice(Message):
    success: bool = False
    sender: Optional[UserInfo] = None

    _fields = (
        _Field(1, "success", _Kind.BOOL),
        _Field(2, "sender", UserInfo),
    )


@dataclass
class ChangeNameRequest(Message):
    new_name: str = ""

    _fields = (_Field(1, "new_name", _Kind.STRING),)


@dataclass
class ChangeNameResponse(Message):
    success: bool = False
    new_name: str = ""

    _fields = (
        _Field(1, "success", _Kind.BOOL),
        _Field(2, "new_name", _Kind.STRING),
    )


@dataclass
class ChangeNameNotice(Message):
    success: bool = False
    sender: Optional[UserInfo] = None
    old_name: str = ""

    _fields = (
        _Field(1, "success", _Kind.BOOL),
        _Field(2, "sender", UserInfo),
        _Field(3, "old_name", _Kind.STRING),
    )


@dataclass
class AdminMessage(Message):
    message: str = ""

    _fields = (_Field(1, "message", _Kind.STRING),)