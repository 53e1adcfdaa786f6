"""Buffer-reusing datagram receiver.

``DatagramReceiver`` owns one fixed receive buffer and keeps at most one
receive operation in flight. Its state is a tagged variant:

- ``_Idle(buffer)``: no receive pending; the receiver holds the buffer
  (``None`` after a failed receive, reallocated on the next call).
- ``_Receiving(task)``: one task owns the buffer until it completes.

A caller cancelled while waiting (for example by ``asyncio.timeout``) does
not cancel the pending receive; the next ``next()`` picks it up, so no
datagram is lost. Only ``cancel()`` stops it.

The receiver is single-consumer: a second task calling ``next()`` while
another is waiting gets ``RuntimeError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TypeAlias

from asyncosc.config import DEFAULT_MAX_DATAGRAM_SIZE
from asyncosc.errors import TransportError
from asyncosc.transport import Address, DatagramEndpoint


__all__ = ["Datagram", "DatagramReceiver"]

logger = logging.getLogger("asyncosc.receiver")


@dataclass(frozen=True, slots=True)
class Datagram:
    """One received datagram.

    Parameters
    ----------
    data : bytes
        Payload, sized to the received byte count (at most the capacity).
    peer : Address
        Sender address as reported by the transport.
    truncated : bool
        ``True`` if the datagram was larger than the receive capacity and
        ``data`` holds only its first ``capacity`` bytes.
    """

    data: bytes
    peer: Address
    truncated: bool = False


@dataclass(slots=True)
class _Idle:
    buffer: bytearray | None


@dataclass(slots=True)
class _Receiving:
    task: asyncio.Task[tuple[bytearray, int, Address]]


_State: TypeAlias = _Idle | _Receiving


async def _recv_into(
    endpoint: DatagramEndpoint, buffer: bytearray
) -> tuple[bytearray, int, Address]:
    nbytes, peer = await endpoint.recv_from_into(buffer)
    return buffer, nbytes, peer


class DatagramReceiver:
    """Pull datagrams from an endpoint through a single reused buffer.

    The buffer is ``max_datagram_size + 1`` bytes long; a receive that
    fills the extra byte means the OS cut the datagram, which is reported
    through ``Datagram.truncated`` instead of passing silently.

    Parameters
    ----------
    endpoint : DatagramEndpoint
        Source of datagrams.
    max_datagram_size : int
        Largest datagram delivered intact.

    Examples
    --------
    >>> receiver = DatagramReceiver(endpoint)  # doctest: +SKIP
    >>> datagram = await receiver.next()  # doctest: +SKIP
    >>> datagram.data, datagram.peer  # doctest: +SKIP
    (b'/ping\\x00\\x00\\x00,\\x00\\x00\\x00', ('127.0.0.1', 50123))
    """

    def __init__(
        self,
        endpoint: DatagramEndpoint,
        *,
        max_datagram_size: int = DEFAULT_MAX_DATAGRAM_SIZE,
    ) -> None:
        self._endpoint = endpoint
        self._capacity = max_datagram_size
        self._state: _State = _Idle(self._allocate())
        self._waiting = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def receiving(self) -> bool:
        """``True`` while a receive operation is in flight."""
        return isinstance(self._state, _Receiving)

    def _allocate(self) -> bytearray:
        logger.debug("Allocating %d-byte receive buffer", self._capacity + 1)
        return bytearray(self._capacity + 1)

    def _start(self) -> asyncio.Task[tuple[bytearray, int, Address]]:
        match self._state:
            case _Receiving(task):
                return task
            case _Idle(buffer):
                if buffer is None:
                    buffer = self._allocate()
                task = asyncio.create_task(_recv_into(self._endpoint, buffer))
                self._state = _Receiving(task)
                return task

    async def next(self) -> Datagram | None:
        """Wait for the next datagram.

        Returns
        -------
        Datagram | None
            The datagram, or ``None`` once the endpoint is closed or the
            receiver was cancelled.

        Raises
        ------
        TransportError
            If the receive call failed. The receiver stays usable.
        RuntimeError
            If another task is already waiting on this receiver.
        """
        if self._endpoint.closed:
            self.cancel()
            return None
        if self._waiting:
            msg = "Another task is already receiving on this endpoint"
            raise RuntimeError(msg)

        task = self._start()
        self._waiting = True
        try:
            buffer, nbytes, peer = await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or current.cancelling() == 0):
                return None
            raise
        except OSError as e:
            self._state = _Idle(None)
            msg = f"Receive failed: {e}"
            raise TransportError(msg, e) from e
        finally:
            self._waiting = False

        self._state = _Idle(buffer)
        truncated = nbytes > self._capacity
        size = min(nbytes, self._capacity)
        return Datagram(bytes(memoryview(buffer)[:size]), peer, truncated)

    def cancel(self) -> asyncio.Task[tuple[bytearray, int, Address]] | None:
        """Cancel the in-flight receive, if any, and return its task."""
        match self._state:
            case _Receiving(task):
                task.cancel()
                self._state = _Idle(None)
                return task
            case _:
                return None
