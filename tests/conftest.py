"""Shared fixtures and test endpoints for asyncosc tests."""

from __future__ import annotations

import asyncio
import errno

import pytest

from asyncosc import Address, AddressLike


PEER: Address = ("10.0.0.2", 5000)


class ScriptedEndpoint:
    """In-memory ``DatagramEndpoint`` fed through a queue.

    Records every buffer handed to ``recv_from_into`` and fails the test if
    two receives ever overlap.
    """

    def __init__(self, local: Address = ("127.0.0.1", 9000)) -> None:
        self.local = local
        self.peer: AddressLike | None = None
        self.inbox: asyncio.Queue[tuple[bytes, Address] | OSError] = asyncio.Queue()
        self.sent: list[tuple[bytes, AddressLike]] = []
        self.buffers: list[bytearray] = []
        self.in_flight = 0
        self.short_by = 0
        self.closed = False

    def feed(self, data: bytes, peer: Address = PEER) -> None:
        self.inbox.put_nowait((data, peer))

    def fail(self, exc: OSError) -> None:
        self.inbox.put_nowait(exc)

    async def connect(self, address: AddressLike) -> None:
        self.peer = address

    async def send(self, data: bytes) -> int:
        if self.peer is None:
            raise OSError(errno.EDESTADDRREQ, "Destination address required")
        self.sent.append((data, self.peer))
        return len(data) - self.short_by

    async def send_to(self, data: bytes, address: AddressLike) -> int:
        self.sent.append((data, address))
        return len(data) - self.short_by

    async def recv_from_into(self, buffer: bytearray) -> tuple[int, Address]:
        self.buffers.append(buffer)
        self.in_flight += 1
        assert self.in_flight == 1, "overlapping receive operations"
        try:
            item = await self.inbox.get()
        finally:
            self.in_flight -= 1
        if isinstance(item, OSError):
            raise item
        data, peer = item
        nbytes = min(len(data), len(buffer))
        buffer[:nbytes] = data[:nbytes]
        return nbytes, peer

    def local_addr(self) -> Address:
        return self.local

    def peer_addr(self) -> Address:
        if self.peer is None:
            raise OSError(errno.ENOTCONN, "Transport endpoint is not connected")
        return self.peer  # type: ignore[return-value]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def endpoint() -> ScriptedEndpoint:
    return ScriptedEndpoint()
