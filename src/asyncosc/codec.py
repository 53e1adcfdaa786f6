"""OSC binary wire format.

Implements OSC 1.0 plus the widely supported 1.1 tags (``h t d S c r m T F
N I [ ]``). All numbers are big-endian and every field is padded to a
multiple of four bytes.

Wire layout::

    message := address-string  type-tag-string  argument*
    bundle  := "#bundle\\0"  timetag:8  (size:4  packet)*
    string  := utf-8 bytes, NUL terminated, padded to 4
    blob    := size:4  bytes, padded to 4

The socket layer only needs the ``Codec`` protocol; ``OscCodec`` is the
default implementation backed by ``encode``/``decode``.
"""

from __future__ import annotations

import struct
from typing import Protocol, runtime_checkable

from asyncosc.errors import DecodeError, EncodeError
from asyncosc.types import (
    Array,
    Blob,
    Bool,
    Char,
    Color,
    Double,
    Float,
    Inf,
    Int,
    Long,
    Midi,
    Nil,
    OscBundle,
    OscMessage,
    OscPacket,
    OscTime,
    OscType,
    String,
    Time,
)


__all__ = [
    "BUNDLE_TAG",
    "MAX_BUNDLE_DEPTH",
    "Codec",
    "OscCodec",
    "decode",
    "encode",
]

BUNDLE_TAG: bytes = b"#bundle\x00"

_U32_MAX: int = (1 << 32) - 1

# Deepest bundle nesting accepted by ``decode``.
MAX_BUNDLE_DEPTH: int = 64


@runtime_checkable
class Codec(Protocol):
    """Protocol for turning packets into datagrams and back.

    Examples
    --------
    Minimal implementation:

    >>> class JsonCodec:
    ...     def encode(self, packet: OscPacket) -> bytes: ...
    ...     def decode(self, data: bytes) -> OscPacket: ...
    """

    def encode(self, packet: OscPacket) -> bytes:
        """Encode a packet, raising ``EncodeError`` on malformed structure."""
        ...

    def decode(self, data: bytes) -> OscPacket:
        """Decode a datagram, raising ``DecodeError`` on invalid input."""
        ...


class OscCodec:
    """Default codec using the OSC binary format."""

    def encode(self, packet: OscPacket) -> bytes:
        return encode(packet)

    def decode(self, data: bytes) -> OscPacket:
        return decode(data)


# =============================================================================
# Encoding
# =============================================================================


def _pad(length: int) -> int:
    return (length + 3) & ~3


def _encode_string(value: str) -> bytes:
    if "\x00" in value:
        msg = f"String contains NUL character: {value!r}"
        raise EncodeError(msg)
    raw = value.encode("utf-8") + b"\x00"
    return raw.ljust(_pad(len(raw)), b"\x00")


def _encode_blob(data: bytes) -> bytes:
    return struct.pack(">i", len(data)) + data.ljust(_pad(len(data)), b"\x00")


def _encode_timetag(value: OscTime) -> bytes:
    if not (0 <= value.seconds <= _U32_MAX and 0 <= value.fractional <= _U32_MAX):
        msg = f"Timetag out of range: {value}"
        raise EncodeError(msg)
    return struct.pack(">II", value.seconds, value.fractional)


def _encode_bytes4(values: tuple[int, int, int, int], kind: str) -> bytes:
    if not all(0 <= v <= 0xFF for v in values):
        msg = f"{kind} components must be in 0..255, got {values}"
        raise EncodeError(msg)
    return bytes(values)


def _encode_arg(arg: OscType, tags: list[str], out: bytearray) -> None:
    match arg:
        case Int(value):
            tags.append("i")
            out += struct.pack(">i", value)
        case Float(value):
            tags.append("f")
            out += struct.pack(">f", value)
        case String(value):
            tags.append("s")
            out += _encode_string(value)
        case Blob(data):
            tags.append("b")
            out += _encode_blob(data)
        case Time(value):
            tags.append("t")
            out += _encode_timetag(value)
        case Long(value):
            tags.append("h")
            out += struct.pack(">q", value)
        case Double(value):
            tags.append("d")
            out += struct.pack(">d", value)
        case Char(value):
            if len(value) != 1:
                msg = f"Char must be exactly one character, got {value!r}"
                raise EncodeError(msg)
            tags.append("c")
            out += struct.pack(">I", ord(value))
        case Color(red, green, blue, alpha):
            tags.append("r")
            out += _encode_bytes4((red, green, blue, alpha), "Color")
        case Midi(port, status, data1, data2):
            tags.append("m")
            out += _encode_bytes4((port, status, data1, data2), "Midi")
        case Bool(value):
            tags.append("T" if value else "F")
        case Nil():
            tags.append("N")
        case Inf():
            tags.append("I")
        case Array(items):
            tags.append("[")
            for item in items:
                _encode_arg(item, tags, out)
            tags.append("]")
        case _:
            msg = f"Not an OSC argument: {arg!r}"
            raise EncodeError(msg)


def _encode_message(message: OscMessage) -> bytes:
    if not isinstance(message.addr, str) or not message.addr.startswith("/"):
        msg = f"OSC address must be a string starting with '/': {message.addr!r}"
        raise EncodeError(msg)
    tags = [","]
    payload = bytearray()
    try:
        for arg in message.args:
            _encode_arg(arg, tags, payload)
    except (struct.error, OverflowError, TypeError, AttributeError) as e:
        # Out-of-range numbers and wrongly typed argument fields.
        msg = f"Invalid argument in {message.addr}: {e}"
        raise EncodeError(msg) from e
    return _encode_string(message.addr) + _encode_string("".join(tags)) + bytes(payload)


def _encode_bundle(bundle: OscBundle) -> bytes:
    out = bytearray(BUNDLE_TAG)
    try:
        out += _encode_timetag(bundle.timetag)
    except (TypeError, AttributeError) as e:
        msg = f"Invalid bundle timetag {bundle.timetag!r}: {e}"
        raise EncodeError(msg) from e
    for packet in bundle.content:
        element = encode(packet)
        out += struct.pack(">i", len(element))
        out += element
    return bytes(out)


def encode(packet: OscPacket) -> bytes:
    """Encode a message or bundle to its wire representation.

    Raises
    ------
    EncodeError
        If the packet cannot be represented (bad address, value out of
        range for its type tag, NUL inside a string, ...).

    Examples
    --------
    >>> encode(OscMessage("/ping"))
    b'/ping\\x00\\x00\\x00,\\x00\\x00\\x00'
    """
    match packet:
        case OscMessage():
            return _encode_message(packet)
        case OscBundle():
            return _encode_bundle(packet)
        case _:
            msg = f"Not an OSC packet: {type(packet).__name__}"
            raise EncodeError(msg)


# =============================================================================
# Decoding
# =============================================================================


class _Reader:
    """Cursor over one packet's bytes; offsets are relative to the packet."""

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def at_end(self) -> bool:
        return self._pos >= len(self._data)

    def take(self, n: int) -> bytes:
        if n > self.remaining:
            msg = f"Truncated packet: need {n} bytes at offset {self._pos}, have {self.remaining}"
            raise DecodeError(msg)
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def unpack(self, fmt: str) -> tuple[int | float, ...]:
        return struct.unpack(fmt, self.take(struct.calcsize(fmt)))

    def string(self) -> str:
        end = self._data.find(b"\x00", self._pos)
        if end < 0:
            msg = f"Unterminated string at offset {self._pos}"
            raise DecodeError(msg)
        raw = self.take(_pad(end + 1 - self._pos))[: end - self._pos]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = f"Invalid UTF-8 in string: {e}"
            raise DecodeError(msg) from e

    def blob(self) -> bytes:
        (size,) = self.unpack(">i")
        if size < 0:
            msg = f"Negative blob size: {size}"
            raise DecodeError(msg)
        return self.take(_pad(int(size)))[: int(size)]


def _decode_arg(tag: str, reader: _Reader) -> OscType:
    match tag:
        case "i":
            return Int(int(reader.unpack(">i")[0]))
        case "f":
            return Float(float(reader.unpack(">f")[0]))
        case "s" | "S":
            return String(reader.string())
        case "b":
            return Blob(reader.blob())
        case "t":
            seconds, fractional = reader.unpack(">II")
            return Time(OscTime(int(seconds), int(fractional)))
        case "h":
            return Long(int(reader.unpack(">q")[0]))
        case "d":
            return Double(float(reader.unpack(">d")[0]))
        case "c":
            code = int(reader.unpack(">I")[0])
            try:
                return Char(chr(code))
            except (ValueError, OverflowError) as e:
                msg = f"Invalid character code: {code}"
                raise DecodeError(msg) from e
        case "r":
            return Color(*reader.take(4))
        case "m":
            return Midi(*reader.take(4))
        case "T":
            return Bool(True)
        case "F":
            return Bool(False)
        case "N":
            return Nil()
        case "I":
            return Inf()
        case _:
            msg = f"Unknown type tag: {tag!r}"
            raise DecodeError(msg)


def _decode_message(data: bytes) -> OscMessage:
    reader = _Reader(data)
    addr = reader.string()
    if reader.at_end():
        # Pre-1.0 senders may omit the type tag string entirely.
        return OscMessage(addr)

    tags = reader.string()
    if not tags.startswith(","):
        msg = f"Type tag string must start with ',': {tags!r}"
        raise DecodeError(msg)

    stack: list[list[OscType]] = [[]]
    for tag in tags[1:]:
        match tag:
            case "[":
                stack.append([])
            case "]":
                if len(stack) == 1:
                    msg = "Unbalanced ']' in type tags"
                    raise DecodeError(msg)
                items = stack.pop()
                stack[-1].append(Array(tuple(items)))
            case _:
                stack[-1].append(_decode_arg(tag, reader))

    if len(stack) != 1:
        msg = "Unbalanced '[' in type tags"
        raise DecodeError(msg)
    if not reader.at_end():
        msg = f"{reader.remaining} trailing bytes after arguments of {addr}"
        raise DecodeError(msg)
    return OscMessage(addr, tuple(stack[0]))


def _decode_bundle(data: bytes, depth: int) -> OscBundle:
    if depth > MAX_BUNDLE_DEPTH:
        msg = f"Bundles nested deeper than {MAX_BUNDLE_DEPTH} levels"
        raise DecodeError(msg)
    reader = _Reader(data)
    reader.take(len(BUNDLE_TAG))
    seconds, fractional = reader.unpack(">II")
    content: list[OscPacket] = []
    while not reader.at_end():
        (size,) = reader.unpack(">i")
        if size < 0 or size > reader.remaining:
            msg = f"Bundle element size {size} exceeds remaining {reader.remaining} bytes"
            raise DecodeError(msg)
        content.append(_decode_packet(reader.take(int(size)), depth + 1))
    return OscBundle(OscTime(int(seconds), int(fractional)), tuple(content))


def _decode_packet(data: bytes, depth: int) -> OscPacket:
    if data.startswith(b"/"):
        return _decode_message(data)
    if data.startswith(BUNDLE_TAG):
        return _decode_bundle(data, depth)
    if not data:
        msg = "Empty packet"
        raise DecodeError(msg)
    msg = f"Packet must start with '/' or '#bundle', got {data[:8]!r}"
    raise DecodeError(msg)


def decode(data: bytes | bytearray | memoryview) -> OscPacket:
    """Decode one datagram into a message or bundle.

    Bundles may nest at most ``MAX_BUNDLE_DEPTH`` levels deep.

    Raises
    ------
    DecodeError
        If the data is empty, truncated, nested too deeply, or otherwise
        not valid OSC.

    Examples
    --------
    >>> decode(b"/ping\\x00\\x00\\x00,\\x00\\x00\\x00")
    OscMessage(addr='/ping', args=())
    """
    return _decode_packet(bytes(data), 1)
