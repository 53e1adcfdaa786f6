from __future__ import annotations

import asyncio
import errno

import pytest

from asyncosc import (
    Blob,
    DecodeError,
    EncodeError,
    Float,
    Int,
    OscBundle,
    OscMessage,
    OscPacket,
    OscSocket,
    OscTime,
    ProtocolError,
    Received,
    SocketConfig,
    String,
    TransportError,
    decode,
    encode,
)

from conftest import PEER, ScriptedEndpoint


@pytest.fixture
def socket(endpoint: ScriptedEndpoint) -> OscSocket:
    return OscSocket(endpoint, config=SocketConfig(max_datagram_size=1024))


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------


class TestSend:
    async def test_send_to_encodes_packet(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        await socket.send_to(("/glitch", (0.17, "ultra")), "127.0.0.1:9000")

        data, address = endpoint.sent[0]
        assert address == "127.0.0.1:9000"
        assert decode(data) == OscMessage("/glitch", (Float(0.17), String("ultra")))

    async def test_send_bundle(self, socket: OscSocket, endpoint: ScriptedEndpoint) -> None:
        bundle = OscBundle(OscTime.IMMEDIATELY, (OscMessage("/a"), OscMessage("/b")))
        await socket.send_to(bundle, PEER)
        assert endpoint.sent[0] == (encode(bundle), PEER)

    async def test_connected_send_targets_peer(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        await socket.connect(PEER)
        await socket.send(OscMessage("/ack", (Int(1),)))
        assert endpoint.sent == [(encode(OscMessage("/ack", (Int(1),))), PEER)]

    async def test_unconnected_send_raises(self, socket: OscSocket) -> None:
        with pytest.raises(TransportError) as exc_info:
            await socket.send(("/ping", ()))
        assert exc_info.value.errno == errno.EDESTADDRREQ

    async def test_short_send_raises(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        endpoint.short_by = 1
        with pytest.raises(TransportError, match="not fully sent"):
            await socket.send_to(("/ping", ()), PEER)
        await socket.connect(PEER)
        with pytest.raises(TransportError, match="not fully sent"):
            await socket.send(("/ping", ()))

    async def test_encode_error_sends_nothing(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        with pytest.raises(EncodeError):
            await socket.send_to(("no-slash", ()), PEER)
        assert endpoint.sent == []

    async def test_unconvertible_packet_raises_type_error(self, socket: OscSocket) -> None:
        with pytest.raises(TypeError):
            await socket.send_to(42, PEER)

    async def test_send_after_close_raises(self, socket: OscSocket) -> None:
        await socket.close()
        with pytest.raises(TransportError, match="closed"):
            await socket.send_to(("/ping", ()), PEER)

    async def test_custom_codec(self, endpoint: ScriptedEndpoint) -> None:
        class FixedCodec:
            def encode(self, packet: OscPacket) -> bytes:
                return b"fixed"

            def decode(self, data: bytes) -> OscPacket:
                return OscMessage("/raw", (Blob(data),))

        socket = OscSocket(endpoint, codec=FixedCodec())
        await socket.send_to(("/ignored", ()), PEER)
        endpoint.feed(b"\x00\x01")

        assert endpoint.sent == [(b"fixed", PEER)]
        assert await socket.recv() == (OscMessage("/raw", (Blob(b"\x00\x01"),)), PEER)


# ---------------------------------------------------------------------------
# Senders and endpoint ownership
# ---------------------------------------------------------------------------


class TestSender:
    async def test_sender_shares_endpoint(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        sender = socket.sender()
        assert sender.endpoint is socket.endpoint
        await sender.send_to(("/from-sender", ()), PEER)
        assert decode(endpoint.sent[0][0]) == OscMessage("/from-sender")

    async def test_sender_uses_connected_peer(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        await socket.connect(PEER)
        sender = socket.sender()
        await sender.send(("/x", ()))
        assert endpoint.sent[0][1] == PEER

    async def test_endpoint_closed_after_socket_then_sender(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        sender = socket.sender()

        await socket.close()
        assert not endpoint.closed
        await sender.send_to(("/still-open", ()), PEER)

        await sender.close()
        assert endpoint.closed

    async def test_endpoint_closed_after_sender_then_socket(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        sender = socket.sender()
        clone = sender.clone()

        await sender.close()
        await clone.close()
        assert not endpoint.closed

        await socket.close()
        assert endpoint.closed

    async def test_closed_sender_rejects_operations(self, socket: OscSocket) -> None:
        sender = socket.sender()
        await sender.close()
        assert sender.closed
        with pytest.raises(TransportError, match="closed"):
            await sender.send_to(("/x", ()), PEER)
        with pytest.raises(TransportError, match="closed"):
            sender.clone()

    async def test_close_is_idempotent(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        sender = socket.sender()
        await sender.close()
        await sender.close()
        assert not endpoint.closed
        await socket.close()
        await socket.close()
        assert endpoint.closed

    async def test_context_manager(self, socket: OscSocket, endpoint: ScriptedEndpoint) -> None:
        async with socket.sender() as sender:
            await sender.send_to(("/ctx", ()), PEER)
        assert sender.closed
        assert not endpoint.closed

    async def test_concurrent_sends(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        senders = [socket.sender() for _ in range(4)]
        await asyncio.gather(
            *(s.send_to(("/n", (i,)), PEER) for i, s in enumerate(senders))
        )
        received = sorted(decode(data).args[0].value for data, _ in endpoint.sent)  # type: ignore[union-attr]
        assert received == [0, 1, 2, 3]


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------


class TestReceive:
    async def test_iterate_items(self, socket: OscSocket, endpoint: ScriptedEndpoint) -> None:
        endpoint.feed(encode(OscMessage("/one")))
        item = await anext(aiter(socket))
        assert item == Received(OscMessage("/one"), PEER)

    async def test_recv_unwraps(self, socket: OscSocket, endpoint: ScriptedEndpoint) -> None:
        endpoint.feed(encode(OscMessage("/one")))
        assert await socket.recv() == (OscMessage("/one"), PEER)

    async def test_recv_raises_protocol_error(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        endpoint.feed(b"junk")
        endpoint.feed(encode(OscMessage("/after")))

        with pytest.raises(ProtocolError) as exc_info:
            await socket.recv()
        assert isinstance(exc_info.value, DecodeError)
        assert await socket.recv() == (OscMessage("/after"), PEER)

    async def test_recv_raises_transport_error(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        endpoint.fail(ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused"))
        with pytest.raises(TransportError):
            await socket.recv()

    async def test_recv_after_close_raises(self, socket: OscSocket) -> None:
        await socket.close()
        with pytest.raises(TransportError, match="closed"):
            await socket.recv()

    async def test_recv_after_close_with_open_sender_raises(self, socket: OscSocket) -> None:
        sender = socket.sender()
        await socket.close()
        with pytest.raises(TransportError, match="closed"):
            await socket.recv()
        await sender.close()

    async def test_close_ends_iteration(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        endpoint.feed(encode(OscMessage("/before")))
        items = []

        async def consume() -> None:
            async for item in socket:
                items.append(item)

        consumer = asyncio.create_task(consume())
        while not items:
            await asyncio.sleep(0)
        await socket.close()
        await asyncio.wait_for(consumer, timeout=1.0)

        assert items == [Received(OscMessage("/before"), PEER)]
        assert endpoint.in_flight == 0
        assert endpoint.closed

    async def test_close_ends_iteration_with_open_sender(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        sender = socket.sender()

        async def next_item() -> Received | None:
            return await anext(aiter(socket), None)  # type: ignore[return-value]

        consumer = asyncio.create_task(next_item())
        await asyncio.sleep(0)

        await socket.close()

        assert await asyncio.wait_for(consumer, timeout=1.0) is None
        assert not endpoint.closed
        await sender.close()

    async def test_iteration_after_close_stops(self, socket: OscSocket) -> None:
        await socket.close()
        assert [item async for item in socket] == []


# ---------------------------------------------------------------------------
# Addresses and accessors
# ---------------------------------------------------------------------------


class TestAddresses:
    def test_local_addr(self, socket: OscSocket, endpoint: ScriptedEndpoint) -> None:
        assert socket.local_addr() == endpoint.local

    def test_peer_addr_unconnected_raises(self, socket: OscSocket) -> None:
        with pytest.raises(TransportError) as exc_info:
            socket.peer_addr()
        assert exc_info.value.errno == errno.ENOTCONN

    async def test_peer_addr_connected(self, socket: OscSocket) -> None:
        await socket.connect(PEER)
        assert socket.peer_addr() == PEER

    async def test_closed_socket_rejects_connect_and_peer_addr(
        self, socket: OscSocket, endpoint: ScriptedEndpoint
    ) -> None:
        await socket.connect(PEER)
        sender = socket.sender()
        await socket.close()

        with pytest.raises(TransportError, match="Socket is closed"):
            await socket.connect(PEER)
        with pytest.raises(TransportError, match="Socket is closed"):
            socket.peer_addr()
        assert not endpoint.closed
        await sender.close()

    def test_socket_property_requires_udp_endpoint(self, socket: OscSocket) -> None:
        with pytest.raises(AttributeError):
            socket.socket

    def test_config(self, socket: OscSocket) -> None:
        assert socket.config.max_datagram_size == 1024

    async def test_async_context_manager(self, endpoint: ScriptedEndpoint) -> None:
        async with OscSocket(endpoint) as socket:
            assert not socket.closed
        assert socket.closed
        assert endpoint.closed
