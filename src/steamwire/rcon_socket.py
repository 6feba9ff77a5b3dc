"""TCP socket for the Source RCON protocol.

The server keeps one authenticated TCP session per client. The socket
connects lazily on the first send and reconnects transparently after being
closed, so callers only need to re-authenticate when told the session is gone.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, NoReturn

from steamwire import errors
from steamwire.buffer import ByteBuffer
from steamwire.config import DEFAULT_TIMEOUT_MS
from steamwire.rcon_packets import packet_from_data
from steamwire.transport import TcpTransport, Transport

if TYPE_CHECKING:
    from collections.abc import Callable

    from steamwire.rcon_packets import RconPacket

log = logging.getLogger(__name__)

_PREFIX_SIZE = 4


class ConnectionState(Enum):
    """RCON connection lifecycle.

    UNCONNECTED -> CONNECTED on connect() or the first send().
    CONNECTED -> UNCONNECTED on close(), or when reply() fails.
    """

    UNCONNECTED = auto()
    CONNECTED = auto()


class RconSocket:
    """Frames RCON packets over a persistent TCP connection."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        packet_factory: Callable[[bytes], Any] = packet_from_data,
        transport: Transport | None = None,
    ) -> None:
        self._transport = transport or TcpTransport(host, port, timeout_ms)
        self.packet_factory = packet_factory
        self._state = ConnectionState.UNCONNECTED

    @property
    def host(self) -> str:
        return self._transport.host

    @property
    def port(self) -> int:
        return self._transport.port

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Whether the socket is CONNECTED with an open transport."""
        return self._state is ConnectionState.CONNECTED and self._transport.connected

    def __enter__(self) -> RconSocket:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self, timeout_ms: int | None = None) -> None:
        """Open a new TCP connection, replacing any existing one.

        Raises:
            TimeoutError: If the connection is not established in time. The
                socket stays UNCONNECTED.
            ConnectionError: If the host cannot be resolved or refuses.
        """
        self._state = ConnectionState.UNCONNECTED
        self._transport.connect(timeout_ms)
        self._state = ConnectionState.CONNECTED

    def ensure_connected(self) -> bool:
        """Connect if needed. Returns True if a new connection was opened."""
        if self.connected:
            return False
        self.connect()
        return True

    def close(self) -> None:
        """Close the connection. Safe to call repeatedly."""
        self._transport.close()
        self._state = ConnectionState.UNCONNECTED

    def send(self, packet: RconPacket) -> None:
        """Send a packet, connecting first if there is no live connection."""
        self.ensure_connected()
        log.debug('Sending packet of type "%s"', type(packet).__name__)
        try:
            self._transport.send(packet.encode())
        except errors.SteamError:
            self.close()
            raise

    def reply(self, timeout_ms: int | None = None) -> Any:
        """Read one length-prefixed frame and decode it.

        A frame may span several TCP reads; chunks are concatenated until the
        declared length has been received. Any failure closes the socket.

        Raises:
            NoAuthError: If the server closed the session before sending data
                (zero-length frame).
            BanError: If the server reset the connection.
            TimeoutError: If the server does not answer in time.
            ConnectionError: If the connection breaks mid-frame.
        """
        remaining = self._read_length(timeout_ms)

        chunks = []
        while remaining > 0:
            chunk = self._receive(remaining, timeout_ms)
            if not chunk:
                self.close()
                msg = f"Connection closed with {remaining} bytes of the frame left"
                raise errors.ConnectionError(msg)
            remaining -= len(chunk)
            chunks.append(chunk)

        packet = self.packet_factory(b"".join(chunks))
        log.debug('Received packet of type "%s"', type(packet).__name__)
        return packet

    def _read_length(self, timeout_ms: int | None) -> int:
        prefix = self._receive(_PREFIX_SIZE, timeout_ms)
        if not prefix:
            self._drop_session()
        while len(prefix) < _PREFIX_SIZE:
            chunk = self._receive(_PREFIX_SIZE - len(prefix), timeout_ms)
            if not chunk:
                self.close()
                msg = "Connection closed inside a frame length prefix"
                raise errors.ConnectionError(msg)
            prefix += chunk

        length = ByteBuffer(prefix).get_long()
        if length == 0:
            self._drop_session()
        if length < 0:
            self.close()
            msg = f"Invalid RCON frame length {length}"
            raise errors.ConnectionError(msg)
        return length

    def _drop_session(self) -> NoReturn:
        self.close()
        msg = f"{self.host}:{self.port} dropped the authenticated RCON session"
        raise errors.NoAuthError(msg)

    def _receive(self, max_bytes: int, timeout_ms: int | None) -> bytes:
        try:
            return self._transport.receive(max_bytes, timeout_ms)
        except errors.PeerResetError as e:
            self.close()
            msg = (
                f"{self.host}:{self.port} reset the RCON connection; "
                "this IP is probably banned"
            )
            raise errors.BanError(msg) from e
        except errors.SteamError:
            self.close()
            raise
