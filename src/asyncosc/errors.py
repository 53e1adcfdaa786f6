"""Error hierarchy for OSC sockets.

Two kinds of failure reach callers: ``TransportError`` for anything the
network layer reports, and ``ProtocolError`` for data that cannot be turned
into (or out of) the OSC wire format.
"""

from __future__ import annotations


__all__ = [
    "DecodeError",
    "EncodeError",
    "OscError",
    "ProtocolError",
    "TransportError",
    "TruncatedDatagramError",
]


class OscError(Exception):
    pass


class TransportError(OscError):
    """IO failure while binding, connecting, sending or receiving.

    Parameters
    ----------
    message : str
        Human readable description.
    cause : OSError | None
        The underlying socket error, if there was one.

    Examples
    --------
    >>> err = TransportError("send failed", ConnectionRefusedError(111, "refused"))
    >>> err.errno
    111
    """

    def __init__(self, message: str, cause: OSError | None = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def errno(self) -> int | None:
        return self.cause.errno if self.cause is not None else None


class ProtocolError(OscError):
    pass


class DecodeError(ProtocolError):
    """Inbound bytes are not a valid OSC packet."""


class TruncatedDatagramError(DecodeError):
    """A datagram did not fit in the receive buffer and was cut short.

    Parameters
    ----------
    capacity : int
        Size of the receive buffer in bytes.
    """

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Datagram exceeds receive capacity of {capacity} bytes")
        self.capacity = capacity


class EncodeError(ProtocolError):
    """Outbound packet cannot be represented in the OSC wire format."""
