"""Protocol buffer messages exchanged with the monitoring dashboard."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Any, ClassVar

_UINT64_MAX = (1 << 64) - 1
_MAX_VARINT_BYTES = 10


class DecodeError(ValueError):
    """Raised when bytes cannot be decoded as a protocol buffer message."""


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LEN = 2
    FIXED32 = 5


class Kind(Enum):
    UINT64 = "uint64"
    BOOL = "bool"
    DOUBLE = "double"
    FLOAT = "float"
    STRING = "string"
    BYTES = "bytes"
    MESSAGE = "message"

    @property
    def wire_type(self) -> WireType:
        return _WIRE_TYPES[self]


_WIRE_TYPES = {
    Kind.UINT64: WireType.VARINT,
    Kind.BOOL: WireType.VARINT,
    Kind.DOUBLE: WireType.FIXED64,
    Kind.FLOAT: WireType.FIXED32,
    Kind.STRING: WireType.LEN,
    Kind.BYTES: WireType.LEN,
    Kind.MESSAGE: WireType.LEN,
}

_DEFAULTS: dict[Kind, Any] = {
    Kind.UINT64: 0,
    Kind.BOOL: False,
    Kind.DOUBLE: 0.0,
    Kind.FLOAT: 0.0,
    Kind.STRING: "",
    Kind.BYTES: b"",
    Kind.MESSAGE: None,
}


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer of at most 64 bits as a base-128 varint."""
    if value < 0 or value > _UINT64_MAX:
        raise ValueError(f"varint out of range: {value}")
    out = []
    while True:
        low = value & 0x7F
        value >>= 7
        if value:
            out.append(low | 0x80)
        else:
            out.append(low)
            return bytes(out)


def decode_varint(data: bytes, pos: int = 0) -> tuple[int, int]:
    """Decode a varint starting at ``pos``; return the value and the next position."""
    result = 0
    for shift_index in range(_MAX_VARINT_BYTES):
        if pos >= len(data):
            raise DecodeError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << (7 * shift_index)
        if not byte & 0x80:
            return result & _UINT64_MAX, pos
    raise DecodeError("varint too long")


@dataclass(frozen=True)
class _Spec:
    tag: int
    kind: Kind
    repeated: bool = False
    message: type | None = None


def _field(tag: int, kind: Kind, *, repeated: bool = False, message: type | None = None) -> Any:
    spec = _Spec(tag, kind, repeated, message)
    if repeated:
        return field(default_factory=list, metadata={"proto": spec})
    return field(default=_DEFAULTS[kind], metadata={"proto": spec})


def _key(tag: int, wire: WireType) -> bytes:
    return encode_varint(tag << 3 | wire)


def _length_delimited(payload: bytes) -> bytes:
    return encode_varint(len(payload)) + payload


def _encode_value(spec: _Spec, value: Any) -> bytes:
    kind = spec.kind
    if kind is Kind.UINT64:
        if not 0 <= int(value) <= _UINT64_MAX:
            raise ValueError(f"uint64 field {spec.tag} out of range: {value}")
        body = encode_varint(int(value))
    elif kind is Kind.BOOL:
        body = encode_varint(1 if value else 0)
    elif kind is Kind.DOUBLE:
        body = struct.pack("<d", float(value))
    elif kind is Kind.FLOAT:
        body = struct.pack("<f", float(value))
    elif kind is Kind.STRING:
        body = _length_delimited(str(value).encode("utf-8"))
    elif kind is Kind.BYTES:
        body = _length_delimited(bytes(value))
    else:
        body = _length_delimited(value.to_bytes())
    return _key(spec.tag, kind.wire_type) + body


def _is_default(spec: _Spec, value: Any) -> bool:
    if spec.kind is Kind.MESSAGE:
        return value is None
    return value == _DEFAULTS[spec.kind]


def _read_raw(data: bytes, pos: int, wire: int) -> tuple[int | bytes, int]:
    if wire == WireType.VARINT:
        return decode_varint(data, pos)
    if wire == WireType.FIXED64:
        size = 8
    elif wire == WireType.FIXED32:
        size = 4
    elif wire == WireType.LEN:
        size, pos = decode_varint(data, pos)
    else:
        raise DecodeError(f"unsupported wire type {wire}")
    end = pos + size
    if end > len(data):
        raise DecodeError("truncated field")
    return bytes(data[pos:end]), end


def _decode_value(spec: _Spec, raw: int | bytes) -> Any:
    kind = spec.kind
    if kind is Kind.UINT64:
        return raw
    if kind is Kind.BOOL:
        return raw != 0
    if kind is Kind.DOUBLE:
        return struct.unpack("<d", raw)[0]
    if kind is Kind.FLOAT:
        return struct.unpack("<f", raw)[0]
    if kind is Kind.STRING:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"invalid UTF-8 in field {spec.tag}") from exc
    if kind is Kind.BYTES:
        return raw
    return spec.message.from_bytes(raw)


class Message:
    """Base for messages whose dataclass fields carry protobuf specs."""

    def to_bytes(self) -> bytes:
        """Serialise the message in protobuf wire format."""
        parts = []
        for f in fields(self):
            spec: _Spec = f.metadata["proto"]
            value = getattr(self, f.name)
            if spec.repeated:
                parts.extend(_encode_value(spec, item) for item in value)
            elif not _is_default(spec, value):
                parts.append(_encode_value(spec, value))
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes):
        """Parse protobuf wire-format bytes, skipping unknown fields."""
        by_tag = {f.metadata["proto"].tag: (f.name, f.metadata["proto"]) for f in fields(cls)}
        values: dict[str, Any] = {}
        data = bytes(data)
        pos = 0
        while pos < len(data):
            key, pos = decode_varint(data, pos)
            tag, wire = key >> 3, key & 0x7
            if tag == 0:
                raise DecodeError("field number 0 is invalid")
            raw, pos = _read_raw(data, pos, wire)
            entry = by_tag.get(tag)
            if entry is None:
                continue
            name, spec = entry
            if wire != spec.kind.wire_type:
                raise DecodeError(f"wrong wire type {wire} for field {tag}")
            value = _decode_value(spec, raw)
            if spec.repeated:
                values.setdefault(name, []).append(value)
            else:
                values[name] = value
        return cls(**values)


@dataclass
class Host(Message):
    platform: str = _field(1, Kind.STRING)
    platform_version: str = _field(2, Kind.STRING)
    cpu: list[str] = _field(3, Kind.STRING, repeated=True)
    mem_total: int = _field(4, Kind.UINT64)
    disk_total: int = _field(5, Kind.UINT64)
    swap_total: int = _field(6, Kind.UINT64)
    arch: str = _field(7, Kind.STRING)
    virtualization: str = _field(8, Kind.STRING)
    boot_time: int = _field(9, Kind.UINT64)
    ip: str = _field(10, Kind.STRING)
    country_code: str = _field(11, Kind.STRING)
    version: str = _field(12, Kind.STRING)
    gpu: list[str] = _field(13, Kind.STRING, repeated=True)


@dataclass
class StateSensorTemperature(Message):
    name: str = _field(1, Kind.STRING)
    temperature: float = _field(2, Kind.DOUBLE)


@dataclass
class State(Message):
    cpu: float = _field(1, Kind.DOUBLE)
    mem_used: int = _field(3, Kind.UINT64)
    swap_used: int = _field(4, Kind.UINT64)
    disk_used: int = _field(5, Kind.UINT64)
    net_in_transfer: int = _field(6, Kind.UINT64)
    net_out_transfer: int = _field(7, Kind.UINT64)
    net_in_speed: int = _field(8, Kind.UINT64)
    net_out_speed: int = _field(9, Kind.UINT64)
    uptime: int = _field(10, Kind.UINT64)
    load1: float = _field(11, Kind.DOUBLE)
    load5: float = _field(12, Kind.DOUBLE)
    load15: float = _field(13, Kind.DOUBLE)
    tcp_conn_count: int = _field(14, Kind.UINT64)
    udp_conn_count: int = _field(15, Kind.UINT64)
    process_count: int = _field(16, Kind.UINT64)
    temperatures: list[StateSensorTemperature] = _field(
        17, Kind.MESSAGE, repeated=True, message=StateSensorTemperature
    )
    gpu: float = _field(18, Kind.DOUBLE)


@dataclass
class Task(Message):
    id: int = _field(1, Kind.UINT64)
    type: int = _field(2, Kind.UINT64)
    data: str = _field(3, Kind.STRING)


@dataclass
class TaskResult(Message):
    id: int = _field(1, Kind.UINT64)
    type: int = _field(2, Kind.UINT64)
    delay: float = _field(3, Kind.FLOAT)
    data: str = _field(4, Kind.STRING)
    successful: bool = _field(5, Kind.BOOL)


@dataclass
class Receipt(Message):
    proced: bool = _field(1, Kind.BOOL)


@dataclass
class IoStreamData(Message):
    data: bytes = _field(1, Kind.BYTES)


SERVICE_NAME: ClassVar[str] = "proto.NezhaService"