"""Conversion from native Python values to OSC arguments and packets.

These are the rules applied at every ``send``/``send_to`` call site:

>>> into_osc_packet(("/glitch", (0.25, "ultra")))
OscMessage(addr='/glitch', args=(Float(value=0.25), String(value='ultra')))
>>> into_osc_args(7)
(Int(value=7),)
"""

from __future__ import annotations

from typing import Any

from asyncosc.types import (
    Array,
    Blob,
    Bool,
    Float,
    Int,
    Long,
    Nil,
    OscBundle,
    OscMessage,
    OscPacket,
    OscTime,
    OSC_TYPES,
    OscType,
    String,
    Time,
)


__all__ = [
    "into_osc_args",
    "into_osc_message",
    "into_osc_packet",
    "into_osc_type",
]

_INT32_MIN: int = -(1 << 31)
_INT32_MAX: int = (1 << 31) - 1


def into_osc_type(value: Any) -> OscType:
    """Convert a single native value into a typed argument.

    ``int`` becomes ``Int`` when it fits in 32 bits and ``Long`` otherwise;
    ``float`` becomes the 32-bit ``Float`` (wrap in ``Double`` explicitly for
    64-bit precision).

    Raises
    ------
    TypeError
        If the value has no OSC representation.
    """
    match value:
        case _ if isinstance(value, OSC_TYPES):
            return value
        case bool():
            return Bool(value)
        case int():
            if _INT32_MIN <= value <= _INT32_MAX:
                return Int(value)
            return Long(value)
        case float():
            return Float(value)
        case str():
            return String(value)
        case bytes() | bytearray() | memoryview():
            return Blob(bytes(value))
        case None:
            return Nil()
        case OscTime():
            return Time(value)
        case list():
            return Array(tuple(into_osc_type(item) for item in value))
        case _:
            msg = f"Cannot convert {type(value).__name__} to an OSC argument"
            raise TypeError(msg)


def into_osc_args(value: Any) -> tuple[OscType, ...]:
    """Convert a value or a group of values into an argument tuple.

    A ``tuple`` or ``list`` yields one argument per element; anything else
    yields a single argument. Use a list nested inside the group for an
    OSC array argument.
    """
    if isinstance(value, (tuple, list)):
        return tuple(into_osc_type(item) for item in value)
    return (into_osc_type(value),)


def into_osc_message(value: Any) -> OscMessage:
    """Convert ``OscMessage`` or an ``(address, args)`` pair into a message."""
    match value:
        case OscMessage():
            return value
        case (str() as addr, args):
            return OscMessage(addr, into_osc_args(args))
        case _:
            msg = f"Cannot convert {type(value).__name__} to an OSC message"
            raise TypeError(msg)


def into_osc_packet(value: Any) -> OscPacket:
    """Convert anything accepted by ``send`` into a packet.

    Messages and bundles pass through unchanged; everything else goes
    through ``into_osc_message``.
    """
    if isinstance(value, (OscMessage, OscBundle)):
        return value
    return into_osc_message(value)
