"""Decoded packet stream over a ``DatagramReceiver``.

Each pull yields exactly one result-like item instead of raising, so one
bad datagram never ends the session:

- ``Received(packet, peer)``: decoded successfully.
- ``DecodeFailed(error, peer, data)``: the bytes arrived but are not valid
  OSC (or were truncated). The sender is still known.
- ``ReceiveFailed(error)``: the receive call itself failed.

The stream ends (``StopAsyncIteration``) only when the endpoint is closed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, TypeAlias

from asyncosc.codec import Codec
from asyncosc.errors import DecodeError, ProtocolError, TransportError, TruncatedDatagramError
from asyncosc.receiver import DatagramReceiver
from asyncosc.transport import Address
from asyncosc.types import OscPacket


__all__ = [
    "DecodeFailed",
    "PacketStream",
    "ReceiveFailed",
    "Received",
    "StreamItem",
]

logger = logging.getLogger("asyncosc.stream")


@dataclass(frozen=True, slots=True)
class Received:
    packet: OscPacket
    peer: Address

    ok: ClassVar[bool] = True

    def unwrap(self) -> tuple[OscPacket, Address]:
        return self.packet, self.peer


@dataclass(frozen=True, slots=True)
class DecodeFailed:
    """A datagram arrived from *peer* but could not be decoded."""

    error: ProtocolError
    peer: Address
    data: bytes

    ok: ClassVar[bool] = False

    def unwrap(self) -> tuple[OscPacket, Address]:
        raise self.error


@dataclass(frozen=True, slots=True)
class ReceiveFailed:
    error: TransportError

    ok: ClassVar[bool] = False

    def unwrap(self) -> tuple[OscPacket, Address]:
        raise self.error


StreamItem: TypeAlias = Received | DecodeFailed | ReceiveFailed


class PacketStream:
    """Async iterator of ``StreamItem`` decoded with *codec*.

    Parameters
    ----------
    receiver : DatagramReceiver
        Source of raw datagrams.
    codec : Codec
        Decoder for datagram payloads.
    reject_truncated : bool
        Report truncated datagrams as ``DecodeFailed`` instead of decoding
        the partial payload.

    Examples
    --------
    >>> async for item in PacketStream(receiver, OscCodec()):  # doctest: +SKIP
    ...     match item:
    ...         case Received(packet, peer):
    ...             print(peer, packet)
    ...         case DecodeFailed(error, peer, _):
    ...             print("bad datagram from", peer, error)
    ...         case ReceiveFailed(error):
    ...             print("receive error", error)
    """

    def __init__(
        self,
        receiver: DatagramReceiver,
        codec: Codec,
        *,
        reject_truncated: bool = True,
    ) -> None:
        self._receiver = receiver
        self._codec = codec
        self._reject_truncated = reject_truncated

    def __aiter__(self) -> PacketStream:
        return self

    async def __anext__(self) -> StreamItem:
        try:
            datagram = await self._receiver.next()
        except TransportError as e:
            logger.debug("Receive failed: %s", e)
            return ReceiveFailed(e)
        if datagram is None:
            raise StopAsyncIteration

        if datagram.truncated:
            if self._reject_truncated:
                logger.debug(
                    "Truncated datagram from %s (capacity %d bytes)",
                    datagram.peer, self._receiver.capacity,
                )
                error = TruncatedDatagramError(self._receiver.capacity)
                return DecodeFailed(error, datagram.peer, datagram.data)
            logger.warning(
                "Decoding datagram from %s truncated to %d bytes",
                datagram.peer, self._receiver.capacity,
            )

        try:
            packet = self._codec.decode(datagram.data)
        except DecodeError as e:
            logger.debug("Failed to decode datagram from %s: %s", datagram.peer, e)
            return DecodeFailed(e, datagram.peer, datagram.data)
        return Received(packet, datagram.peer)
