"""Datagram transport primitive.

Defines the ``DatagramEndpoint`` protocol the socket layer is written
against, ``UdpEndpoint`` which implements it over a non-blocking
``socket.socket`` driven by the running event loop, and ``SharedEndpoint``,
the reference count that lets an ``OscSocket`` and its senders share one
endpoint.

Endpoints speak plain ``OSError``; translating to ``TransportError`` is the
caller's job.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from collections.abc import Callable
from typing import Any, Protocol, TypeAlias, runtime_checkable


__all__ = [
    "Address",
    "AddressLike",
    "DatagramEndpoint",
    "SharedEndpoint",
    "UdpEndpoint",
    "resolve_address",
    "split_address",
]

logger = logging.getLogger("asyncosc.transport")

Address: TypeAlias = tuple[Any, ...]
AddressLike: TypeAlias = Address | str


def split_address(address: AddressLike) -> tuple[str, int]:
    """Split ``"host:port"`` (or a sockaddr tuple) into host and port.

    IPv6 hosts in strings must be bracketed: ``"[::1]:9000"``.

    Examples
    --------
    >>> split_address("localhost:5050")
    ('localhost', 5050)
    >>> split_address("[::1]:0")
    ('::1', 0)
    """
    if isinstance(address, str):
        host, sep, port = address.rpartition(":")
        if not sep or not port.isdigit():
            msg = f"Expected 'host:port', got {address!r}"
            raise ValueError(msg)
        return host.strip("[]"), int(port)
    return str(address[0]), int(address[1])


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


async def _getaddrinfo(
    address: AddressLike, family: int = socket.AF_UNSPEC
) -> tuple[int, int, int, Address]:
    host, port = split_address(address)
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, family=family, type=socket.SOCK_DGRAM)
    if not infos:
        msg = f"No address found for {host}:{port}"
        raise OSError(msg)
    af, kind, proto, _, sockaddr = infos[0]
    return af, kind, proto, sockaddr


async def resolve_address(
    address: AddressLike, *, family: int = socket.AF_UNSPEC
) -> Address:
    """Resolve *address* to a sockaddr usable with *family*.

    Tuples whose host is already an IP literal are returned unchanged,
    without a resolver round trip.

    Raises
    ------
    OSError
        If the name cannot be resolved (``socket.gaierror``).
    """
    if isinstance(address, tuple) and _is_ip_literal(str(address[0])):
        return address
    _, _, _, sockaddr = await _getaddrinfo(address, family)
    return sockaddr


@runtime_checkable
class DatagramEndpoint(Protocol):
    """Protocol for an asynchronous connectionless socket.

    Examples
    --------
    Minimal in-memory implementation:

    >>> class NullEndpoint:
    ...     closed = False
    ...     async def connect(self, address): ...
    ...     async def send(self, data: bytes) -> int: return len(data)
    ...     async def send_to(self, data: bytes, address) -> int: return len(data)
    ...     async def recv_from_into(self, buffer: bytearray): ...
    ...     def local_addr(self): return ("127.0.0.1", 0)
    ...     def peer_addr(self): raise OSError("not connected")
    ...     def close(self) -> None: self.closed = True
    """

    @property
    def closed(self) -> bool: ...

    async def connect(self, address: AddressLike) -> None:
        """Restrict the endpoint to a single peer."""
        ...

    async def send(self, data: bytes) -> int:
        """Send to the connected peer, returning the byte count written."""
        ...

    async def send_to(self, data: bytes, address: AddressLike) -> int:
        """Send to *address*, returning the byte count written."""
        ...

    async def recv_from_into(self, buffer: bytearray) -> tuple[int, Address]:
        """Receive one datagram into *buffer*, returning ``(nbytes, sender)``."""
        ...

    def local_addr(self) -> Address: ...

    def peer_addr(self) -> Address: ...

    def close(self) -> None: ...


class UdpEndpoint:
    """``DatagramEndpoint`` over a non-blocking UDP ``socket.socket``.

    Parameters
    ----------
    sock : socket.socket
        A datagram socket. It is switched to non-blocking mode.

    Examples
    --------
    >>> endpoint = await UdpEndpoint.bind(("127.0.0.1", 0))  # doctest: +SKIP
    >>> endpoint.local_addr()  # doctest: +SKIP
    ('127.0.0.1', 50123)
    """

    def __init__(self, sock: socket.socket) -> None:
        if sock.type != socket.SOCK_DGRAM:
            msg = f"Expected a SOCK_DGRAM socket, got {sock.type!r}"
            raise ValueError(msg)
        sock.setblocking(False)
        self._sock = sock
        self._write_ready: asyncio.Future[None] | None = None

    @classmethod
    async def bind(
        cls, address: AddressLike, *, reuse_address: bool = False
    ) -> UdpEndpoint:
        """Create a UDP socket bound to *address* (port 0 picks a free port)."""
        family, kind, proto, sockaddr = await _getaddrinfo(address)
        sock = socket.socket(family, kind, proto)
        try:
            if reuse_address:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setblocking(False)
            sock.bind(sockaddr)
        except OSError:
            sock.close()
            raise
        logger.debug("Bound UDP socket to %s", sock.getsockname())
        return cls(sock)

    @property
    def socket(self) -> socket.socket:
        return self._sock

    @property
    def closed(self) -> bool:
        return self._sock.fileno() == -1

    async def connect(self, address: AddressLike) -> None:
        sockaddr = await resolve_address(address, family=self._sock.family)
        await asyncio.get_running_loop().sock_connect(self._sock, sockaddr)
        logger.debug("Connected %s -> %s", self._sock.getsockname(), sockaddr)

    async def send(self, data: bytes) -> int:
        return await self._write(self._sock.send, data)

    async def send_to(self, data: bytes, address: AddressLike) -> int:
        sockaddr = await resolve_address(address, family=self._sock.family)
        return await self._write(self._sock.sendto, data, sockaddr)

    async def recv_from_into(self, buffer: bytearray) -> tuple[int, Address]:
        loop = asyncio.get_running_loop()
        return await loop.sock_recvfrom_into(self._sock, buffer)

    def local_addr(self) -> Address:
        return self._sock.getsockname()

    def peer_addr(self) -> Address:
        return self._sock.getpeername()

    def close(self) -> None:
        ready, self._write_ready = self._write_ready, None
        if ready is not None:
            # Blocked writers wake up and fail on the closed socket.
            ready.get_loop().remove_writer(self._sock.fileno())
            if not ready.done():
                ready.set_result(None)
        self._sock.close()

    async def _write(self, op: Callable[..., int], *args: Any) -> int:
        while True:
            try:
                return op(*args)
            except (BlockingIOError, InterruptedError):
                await self._writable()

    async def _writable(self) -> None:
        """Wait until the socket is writable.

        Every blocked writer awaits the same future; the loop allows only
        one writer callback per file descriptor.
        """
        if self._write_ready is None:
            loop = asyncio.get_running_loop()
            fd = self._sock.fileno()
            ready: asyncio.Future[None] = loop.create_future()

            def on_writable() -> None:
                loop.remove_writer(fd)
                self._write_ready = None
                if not ready.done():
                    ready.set_result(None)

            loop.add_writer(fd, on_writable)
            self._write_ready = ready
        # Cancelling one writer must leave the shared future pending.
        await asyncio.shield(self._write_ready)

    def __repr__(self) -> str:
        return f"UdpEndpoint({self._sock!r})"


class SharedEndpoint:
    """Reference-counted ownership of one ``DatagramEndpoint``.

    Every handle (the socket and each sender) holds one reference. The
    endpoint is closed when the last reference is released, whatever the
    order of release.

    Parameters
    ----------
    endpoint : DatagramEndpoint
        The endpoint to share. The new ``SharedEndpoint`` starts with one
        reference, owned by its creator.

    Examples
    --------
    >>> shared = SharedEndpoint(NullEndpoint())  # doctest: +SKIP
    >>> other = shared.acquire()  # doctest: +SKIP
    >>> shared.release(); shared.refs  # doctest: +SKIP
    1
    """

    def __init__(self, endpoint: DatagramEndpoint) -> None:
        self._endpoint = endpoint
        self._refs = 1

    @property
    def endpoint(self) -> DatagramEndpoint:
        return self._endpoint

    @property
    def refs(self) -> int:
        return self._refs

    def acquire(self) -> SharedEndpoint:
        if self._refs == 0:
            msg = "Endpoint already released"
            raise RuntimeError(msg)
        self._refs += 1
        return self

    def release(self) -> None:
        if self._refs == 0:
            msg = "Endpoint released more times than acquired"
            raise RuntimeError(msg)
        self._refs -= 1
        if self._refs == 0:
            logger.debug("Last reference released, closing %r", self._endpoint)
            self._endpoint.close()
