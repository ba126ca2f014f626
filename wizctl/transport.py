import asyncio
import logging
import socket
from typing import Optional, Tuple

from .exceptions import WizConnectionError

_LOGGER = logging.getLogger(__name__)

Address = Tuple[str, int]
Datagram = Tuple[bytes, Address]


class WizDatagramListener(asyncio.DatagramProtocol):
    """Queues up datagrams received on a WizTransport"""

    transport = None

    def __init__(self, queue: "asyncio.Queue[Datagram]"):
        self.queue = queue

    def connection_made(self, transport):
        self.transport = transport

    def connection_lost(self, exc):
        pass

    def datagram_received(self, data, addr):
        self.queue.put_nowait((data, addr))

    def error_received(self, exc):
        # ICMP port unreachable and friends; the caller's timer
        # takes care of it
        _LOGGER.debug("error_received: %s", exc)


class WizTransport:
    """A UDP socket bound to an ephemeral local port, owned by a single
    request or discovery call. Use it as an async context manager so
    that the socket is closed on every path out of the call."""

    sock: socket.socket
    broadcast: bool
    _transport: Optional[asyncio.DatagramTransport] = None
    _queue: "asyncio.Queue[Datagram]"

    def __init__(self, sock: socket.socket, broadcast: bool = False):
        self.sock = sock
        self.broadcast = broadcast
        self._queue = asyncio.Queue()

    @classmethod
    async def open(
        cls, broadcast: bool = False, local_address: str = "0.0.0.0"
    ) -> "WizTransport":
        """Bind a new socket to (local_address, 0) and start receiving"""
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise WizConnectionError("Unable to create UDP socket", exc) from exc

        try:
            if broadcast:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setblocking(False)
            sock.bind((local_address, 0))
            wiz_transport = cls(sock, broadcast)
            loop = asyncio.get_running_loop()
            transport, _protocol = await loop.create_datagram_endpoint(
                lambda: WizDatagramListener(wiz_transport._queue), sock=sock
            )
        except OSError as exc:
            sock.close()
            raise WizConnectionError(
                f"Unable to bind UDP socket on {local_address}", exc
            ) from exc

        wiz_transport._transport = transport
        _LOGGER.debug(
            "Bound to %s (broadcast=%s)", wiz_transport.local_address, broadcast
        )
        return wiz_transport

    @property
    def local_address(self) -> Address:
        return self.sock.getsockname()

    @property
    def is_closed(self) -> bool:
        return self._transport is None

    def send(self, data: bytes, addr: Address):
        """Transmit data to addr. A failed or partial write means the
        local socket is broken, and raises WizConnectionError"""
        if self._transport is None:
            raise WizConnectionError("Transport is closed")
        try:
            sent = self.sock.sendto(data, addr)
        except OSError as exc:
            raise WizConnectionError(
                f"Failed to send to {addr[0]}:{addr[1]}", exc
            ) from exc
        if sent != len(data):
            _LOGGER.error("Incomplete send: %d/%d bytes", sent, len(data))
            raise WizConnectionError(
                f"Failed to send to {addr[0]}:{addr[1]}: "
                f"only {sent} of {len(data)} bytes were written"
            )
        _LOGGER.debug("Sent %d bytes to %s:%d", sent, addr[0], addr[1])

    async def receive(self) -> Datagram:
        """Wait for the next inbound datagram"""
        return await self._queue.get()

    def close(self):
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            _LOGGER.debug("Socket closed")

    async def __aenter__(self) -> "WizTransport":
        return self

    async def __aexit__(self, *error_info):
        self.close()
