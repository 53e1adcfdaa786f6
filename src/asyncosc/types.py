"""OSC packet model.

Packets are immutable values compared structurally. An ``OscMessage`` is an
address plus typed arguments; an ``OscBundle`` is a timetag plus nested
packets. Arguments are small tagged dataclasses so they can be matched with
``match``/``case``::

    match message.as_tuple():
        case ("/volume", (Float(level),)):
            ...
"""

from __future__ import annotations

import struct
import time
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, ClassVar, TypeAlias


__all__ = [
    "Array",
    "Blob",
    "Bool",
    "Char",
    "Color",
    "Double",
    "Float",
    "Inf",
    "Int",
    "Long",
    "Midi",
    "Nil",
    "OSC_TYPES",
    "OscBundle",
    "OscMessage",
    "OscPacket",
    "OscTime",
    "OscType",
    "String",
    "Time",
]

NTP_UNIX_OFFSET: int = 2_208_988_800
_FRACTION: int = 1 << 32


@dataclass(frozen=True, slots=True)
class OscTime:
    """NTP timestamp used by bundles and ``t`` arguments.

    Parameters
    ----------
    seconds : int
        Seconds since 1900-01-01 (u32).
    fractional : int
        Fractions of a second in units of 2**-32 s (u32).

    Examples
    --------
    >>> OscTime.from_unix(0.5)
    OscTime(seconds=2208988800, fractional=2147483648)
    >>> OscTime.IMMEDIATELY
    OscTime(seconds=0, fractional=1)
    """

    IMMEDIATELY: ClassVar[OscTime]

    seconds: int
    fractional: int

    @classmethod
    def from_unix(cls, timestamp: float) -> OscTime:
        whole = int(timestamp)
        fractional = int((timestamp - whole) * _FRACTION) % _FRACTION
        return cls(whole + NTP_UNIX_OFFSET, fractional)

    @classmethod
    def now(cls) -> OscTime:
        return cls.from_unix(time.time())

    def to_unix(self) -> float:
        return self.seconds - NTP_UNIX_OFFSET + self.fractional / _FRACTION


OscTime.IMMEDIATELY = OscTime(0, 1)


# Argument variants, one per type tag.


@dataclass(frozen=True, slots=True)
class Int:
    value: int


@dataclass(frozen=True, slots=True)
class Float:
    """32-bit float argument.

    The value is rounded to single precision on construction, so
    ``Float(0.17)`` equals the ``Float`` decoded from the wire.
    """

    value: float

    def __post_init__(self) -> None:
        try:
            rounded = struct.unpack(">f", struct.pack(">f", self.value))[0]
        except OverflowError:
            # Out of f32 range; left as is so encoding reports it.
            return
        object.__setattr__(self, "value", rounded)


@dataclass(frozen=True, slots=True)
class String:
    value: str


@dataclass(frozen=True, slots=True)
class Blob:
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True, slots=True)
class Time:
    value: OscTime


@dataclass(frozen=True, slots=True)
class Long:
    value: int


@dataclass(frozen=True, slots=True)
class Double:
    value: float


@dataclass(frozen=True, slots=True)
class Char:
    value: str


@dataclass(frozen=True, slots=True)
class Color:
    red: int
    green: int
    blue: int
    alpha: int


@dataclass(frozen=True, slots=True)
class Midi:
    port: int
    status: int
    data1: int
    data2: int


@dataclass(frozen=True, slots=True)
class Bool:
    value: bool


@dataclass(frozen=True, slots=True)
class Nil:
    pass


@dataclass(frozen=True, slots=True)
class Inf:
    pass


@dataclass(frozen=True, slots=True)
class Array:
    items: tuple[OscType, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


OscType: TypeAlias = (
    Int
    | Float
    | String
    | Blob
    | Time
    | Long
    | Double
    | Char
    | Color
    | Midi
    | Bool
    | Nil
    | Inf
    | Array
)

# Runtime counterpart of ``OscType`` for isinstance checks.
OSC_TYPES: tuple[type, ...] = (
    Int,
    Float,
    String,
    Blob,
    Time,
    Long,
    Double,
    Char,
    Color,
    Midi,
    Bool,
    Nil,
    Inf,
    Array,
)


@dataclass(frozen=True, slots=True)
class OscMessage:
    """An address pattern with typed arguments.

    Parameters
    ----------
    addr : str
        OSC address, e.g. ``"/mixer/volume"``.
    args : tuple[OscType, ...]
        Typed arguments. Any iterable is accepted and stored as a tuple.

    Examples
    --------
    >>> msg = OscMessage.new("/volume", (0.5, "main"))
    >>> msg.as_tuple()
    ('/volume', (Float(value=0.5), String(value='main')))
    >>> msg.starts_with("/vol")
    True
    """

    addr: str
    args: tuple[OscType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))

    @classmethod
    def new(cls, addr: str, args: Any = ()) -> OscMessage:
        """Build a message from native Python values.

        ``args`` goes through ``into_osc_args``: a tuple or list gives one
        argument per element, a single value gives one argument.
        """
        from asyncosc.convert import into_osc_args

        return cls(str(addr), into_osc_args(args))

    def starts_with(self, prefix: str) -> bool:
        return self.addr.startswith(prefix)

    def as_tuple(self) -> tuple[str, tuple[OscType, ...]]:
        return (self.addr, self.args)

    def message(self) -> OscMessage | None:
        return self


@dataclass(frozen=True, slots=True)
class OscBundle:
    """A timetag and an ordered sequence of nested packets."""

    timetag: OscTime
    content: tuple[OscPacket, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", tuple(self.content))

    def message(self) -> OscMessage | None:
        return None

    def messages(self) -> Iterator[OscMessage]:
        """Yield every message in the bundle, depth first."""
        for packet in self.content:
            match packet:
                case OscMessage():
                    yield packet
                case OscBundle():
                    yield from packet.messages()


OscPacket: TypeAlias = OscMessage | OscBundle
