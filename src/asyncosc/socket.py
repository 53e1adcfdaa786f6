"""OSC over UDP: socket and sender handles.

``OscSocket`` binds a UDP endpoint, optionally connects it to one peer, sends
packets and is itself an async iterator of received packets.
``OscSender`` is a send-only handle sharing the same endpoint, meant to be
handed to other tasks.

Example::

    socket = await OscSocket.bind("127.0.0.1:0")
    await socket.connect("127.0.0.1:9000")
    await socket.send(("/volume", (0.9,)))

    async for item in socket:
        packet, peer = item.unwrap()
"""

from __future__ import annotations

import asyncio
import logging
import socket as _socket
from types import TracebackType
from typing import Any

from asyncosc.codec import Codec, OscCodec
from asyncosc.config import SocketConfig
from asyncosc.convert import into_osc_packet
from asyncosc.errors import TransportError
from asyncosc.receiver import DatagramReceiver
from asyncosc.stream import PacketStream, StreamItem
from asyncosc.transport import (
    Address,
    AddressLike,
    DatagramEndpoint,
    SharedEndpoint,
    UdpEndpoint,
)
from asyncosc.types import OscPacket


__all__ = ["OscSender", "OscSocket"]

logger = logging.getLogger("asyncosc.socket")


def _check_len(data: bytes, sent: int) -> None:
    if sent != len(data):
        msg = f"UDP packet not fully sent: {sent} of {len(data)} bytes"
        raise TransportError(msg)


class OscSender:
    """Send-only handle over a shared endpoint.

    Obtained from ``OscSocket.sender()`` or ``OscSender.clone()``. Every
    handle owns one reference to the endpoint; the endpoint is closed when
    the last handle is closed. Sends are independent datagrams, so one
    sender can be used from many tasks at once.

    Parameters
    ----------
    shared : SharedEndpoint
        Endpoint reference owned by this handle.
    codec : Codec | None
        Packet encoder. Defaults to ``OscCodec``.
    """

    def __init__(self, shared: SharedEndpoint, codec: Codec | None = None) -> None:
        self._shared = shared
        self._codec = codec or OscCodec()
        self._closed = False

    @property
    def endpoint(self) -> DatagramEndpoint:
        return self._shared.endpoint

    @property
    def closed(self) -> bool:
        return self._closed

    def _live_endpoint(self) -> DatagramEndpoint:
        if self._closed:
            msg = "Sender is closed"
            raise TransportError(msg)
        return self._shared.endpoint

    def _encode(self, packet: Any) -> bytes:
        return self._codec.encode(into_osc_packet(packet))

    async def send(self, packet: Any) -> None:
        """Send a packet to the connected peer.

        *packet* is anything ``into_osc_packet`` accepts: an ``OscMessage``,
        an ``OscBundle`` or an ``(address, args)`` pair.

        Raises
        ------
        TypeError
            If *packet* cannot be converted.
        EncodeError
            If the packet cannot be encoded.
        TransportError
            If the endpoint is not connected, the send fails, or fewer
            bytes than encoded were sent.
        """
        data = self._encode(packet)
        endpoint = self._live_endpoint()
        try:
            sent = await endpoint.send(data)
        except OSError as e:
            msg = f"Send failed: {e}"
            raise TransportError(msg, e) from e
        _check_len(data, sent)

    async def send_to(self, packet: Any, address: AddressLike) -> None:
        """Send a packet to *address*, regardless of connection state.

        Raises the same errors as ``send``.
        """
        data = self._encode(packet)
        endpoint = self._live_endpoint()
        try:
            sent = await endpoint.send_to(data, address)
        except OSError as e:
            msg = f"Send to {address} failed: {e}"
            raise TransportError(msg, e) from e
        _check_len(data, sent)

    def local_addr(self) -> Address:
        try:
            return self._live_endpoint().local_addr()
        except OSError as e:
            msg = f"Cannot read local address: {e}"
            raise TransportError(msg, e) from e

    def clone(self) -> OscSender:
        """Return another sender holding its own endpoint reference."""
        self._live_endpoint()
        return OscSender(self._shared.acquire(), self._codec)

    async def close(self) -> None:
        """Release this handle's endpoint reference. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._shared.release()

    async def __aenter__(self) -> OscSender:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class OscSocket:
    """A UDP socket that sends and receives OSC packets.

    Iterating the socket yields one ``StreamItem`` per datagram; the
    iteration ends when the socket is closed. Only one task may iterate a
    socket at a time; use ``sender()`` to send from other tasks.

    Parameters
    ----------
    endpoint : DatagramEndpoint
        Bound endpoint. The socket takes ownership of it.
    config : SocketConfig | None
        Receive settings. Defaults to ``SocketConfig()``.
    codec : Codec | None
        Packet codec. Defaults to ``OscCodec``.

    Examples
    --------
    >>> async with await OscSocket.bind("127.0.0.1:0") as socket:  # doctest: +SKIP
    ...     await socket.send_to(("/ping", ()), "127.0.0.1:9000")
    ...     packet, peer = await socket.recv()
    """

    def __init__(
        self,
        endpoint: DatagramEndpoint,
        *,
        config: SocketConfig | None = None,
        codec: Codec | None = None,
    ) -> None:
        self._config = config or SocketConfig()
        codec = codec or OscCodec()
        self._sender = OscSender(SharedEndpoint(endpoint), codec)
        self._receiver = DatagramReceiver(
            endpoint, max_datagram_size=self._config.max_datagram_size
        )
        self._stream = PacketStream(
            self._receiver, codec, reject_truncated=self._config.reject_truncated
        )

    @classmethod
    async def bind(
        cls,
        address: AddressLike,
        *,
        config: SocketConfig | None = None,
        codec: Codec | None = None,
    ) -> OscSocket:
        """Create a socket bound to *address*.

        Binding to port 0 requests an OS-assigned port; query it with
        ``local_addr()``.

        Raises
        ------
        TransportError
            If the address cannot be resolved or bound.
        """
        config = config or SocketConfig()
        try:
            endpoint = await UdpEndpoint.bind(address, reuse_address=config.reuse_address)
        except OSError as e:
            msg = f"Bind to {address} failed: {e}"
            raise TransportError(msg, e) from e
        logger.debug("OSC socket bound to %s", endpoint.local_addr())
        return cls(endpoint, config=config, codec=codec)

    @classmethod
    def from_socket(
        cls,
        sock: _socket.socket,
        *,
        config: SocketConfig | None = None,
        codec: Codec | None = None,
    ) -> OscSocket:
        """Wrap an existing, already bound, ``SOCK_DGRAM`` socket."""
        return cls(UdpEndpoint(sock), config=config, codec=codec)

    @property
    def config(self) -> SocketConfig:
        return self._config

    @property
    def endpoint(self) -> DatagramEndpoint:
        return self._sender.endpoint

    @property
    def socket(self) -> _socket.socket:
        """The underlying ``socket.socket``, for ``UdpEndpoint``-backed sockets."""
        endpoint = self.endpoint
        if not isinstance(endpoint, UdpEndpoint):
            msg = f"{type(endpoint).__name__} has no underlying socket"
            raise AttributeError(msg)
        return endpoint.socket

    @property
    def closed(self) -> bool:
        return self._sender.closed

    def _live_endpoint(self) -> DatagramEndpoint:
        if self.closed:
            msg = "Socket is closed"
            raise TransportError(msg)
        return self.endpoint

    async def connect(self, address: AddressLike) -> None:
        """Connect the socket to a remote address.

        When connected, only datagrams from that address are received and
        ``send`` targets it. Calling ``connect`` again re-targets the socket.

        Raises
        ------
        TransportError
            If the address cannot be resolved or connected.
        """
        endpoint = self._live_endpoint()
        try:
            await endpoint.connect(address)
        except OSError as e:
            msg = f"Connect to {address} failed: {e}"
            raise TransportError(msg, e) from e

    async def send(self, packet: Any) -> None:
        """Send a packet to the connected peer. See ``OscSender.send``."""
        await self._sender.send(packet)

    async def send_to(self, packet: Any, address: AddressLike) -> None:
        """Send a packet to *address*. See ``OscSender.send_to``."""
        await self._sender.send_to(packet, address)

    def sender(self) -> OscSender:
        """Create a standalone sender sharing this socket's endpoint.

        The sender can be moved to other tasks and outlives the socket
        until it is closed itself.
        """
        return self._sender.clone()

    def local_addr(self) -> Address:
        """Return the local address, useful after binding to port 0."""
        return self._sender.local_addr()

    def peer_addr(self) -> Address:
        """Return the connected peer address.

        Raises
        ------
        TransportError
            If the socket is not connected.
        """
        try:
            return self._live_endpoint().peer_addr()
        except OSError as e:
            msg = f"Cannot read peer address: {e}"
            raise TransportError(msg, e) from e

    async def recv(self) -> tuple[OscPacket, Address]:
        """Receive the next packet, raising instead of returning failures.

        Raises
        ------
        ProtocolError
            If the next datagram could not be decoded.
        TransportError
            If the receive failed or the socket is closed.
        """
        try:
            item = await anext(self)
        except StopAsyncIteration:
            msg = "Socket is closed"
            raise TransportError(msg) from None
        return item.unwrap()

    def __aiter__(self) -> OscSocket:
        return self

    async def __anext__(self) -> StreamItem:
        if self.closed:
            raise StopAsyncIteration
        return await anext(self._stream)

    async def close(self) -> None:
        """Stop receiving and release the socket's endpoint reference.

        An in-flight receive is cancelled and the stream ends. The endpoint
        itself stays open while senders created from this socket are open.
        """
        if self.closed:
            return
        task = self._receiver.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        await self._sender.close()
        logger.debug("OSC socket closed")

    async def __aenter__(self) -> OscSocket:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
