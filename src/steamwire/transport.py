"""Blocking UDP and TCP transports shared by the query and RCON sockets.

Both protocols need the same primitive: open an endpoint, write bytes, read up
to N bytes within a deadline, and close. The sockets built on top of these
transports only add framing. OS-level failures are translated into the
steamwire error types here so the protocol code never sees an ``OSError``.
"""

from __future__ import annotations

import contextlib
import logging
import socket
from typing import TYPE_CHECKING, Protocol

from steamwire import errors
from steamwire.buffer import ByteBuffer
from steamwire.config import DEFAULT_TIMEOUT_MS

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)


class Transport(Protocol):
    """Connect/send/receive/close capability used by the protocol sockets."""

    host: str
    port: int
    timeout_ms: int

    @property
    def connected(self) -> bool: ...

    def connect(self, timeout_ms: int | None = None) -> None: ...

    def send(self, data: bytes) -> None: ...

    def receive(self, max_bytes: int, timeout_ms: int | None = None) -> bytes: ...

    def close(self) -> None: ...


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map socket exceptions onto the steamwire error hierarchy."""
    try:
        yield
    except TimeoutError as e:
        msg = f"{action} timed out"
        raise errors.TimeoutError(msg) from e
    except ConnectionResetError as e:
        msg = f"{action} failed: connection reset by peer"
        raise errors.PeerResetError(msg) from e
    except OSError as e:
        msg = f"{action} failed: {e}"
        raise errors.ConnectionError(msg) from e


def _seconds(timeout_ms: int) -> float:
    return timeout_ms / 1000.0


class _SocketTransport:
    _socket_type: int
    _label: str

    def __init__(
        self, host: str, port: int, timeout_ms: int = DEFAULT_TIMEOUT_MS
    ) -> None:
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms
        self._sock: socket.socket | None = None

    def __repr__(self) -> str:
        state = "connected" if self.connected else "unconnected"
        return f"<{type(self).__name__} {self.host}:{self.port} {state}>"

    @property
    def connected(self) -> bool:
        """Whether an OS socket is currently open."""
        return self._sock is not None

    def connect(self, timeout_ms: int | None = None) -> None:
        """Resolve the host and open the socket.

        Any previously open socket is closed first. On failure the transport
        is left unconnected.
        """
        self.close()
        timeout = self.timeout_ms if timeout_ms is None else timeout_ms
        with _translate_errors(f"Connecting to {self.host}:{self.port}"):
            address = socket.gethostbyname(self.host)
            sock = socket.socket(socket.AF_INET, self._socket_type)
            try:
                sock.settimeout(_seconds(timeout))
                sock.connect((address, self.port))
            except OSError:
                sock.close()
                raise
        self._sock = sock
        log.debug("Opened %s socket to %s:%d", self._label, address, self.port)

    def send(self, data: bytes) -> None:
        """Write all of data to the peer."""
        sock = self._require_socket()
        with _translate_errors(f"Sending to {self.host}:{self.port}"):
            sock.sendall(data)

    def receive(self, max_bytes: int, timeout_ms: int | None = None) -> bytes:
        """Block until at most max_bytes are available and return them.

        An empty result means the peer closed the stream (TCP) or sent an
        empty datagram (UDP).
        """
        sock = self._require_socket()
        timeout = self.timeout_ms if timeout_ms is None else timeout_ms
        with _translate_errors(f"Receiving from {self.host}:{self.port}"):
            sock.settimeout(_seconds(timeout))
            return sock.recv(max_bytes)

    def close(self) -> None:
        """Close the socket. Safe to call repeatedly."""
        if self._sock is not None:
            with contextlib.suppress(OSError):
                self._sock.close()
            self._sock = None
            log.debug("Closed %s socket to %s:%d", self._label, self.host, self.port)

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            msg = f"Not connected to {self.host}:{self.port}"
            raise errors.ConnectionError(msg)
        return self._sock


class UdpTransport(_SocketTransport):
    """Connected datagram socket; each receive returns one datagram."""

    _socket_type = socket.SOCK_DGRAM
    _label = "UDP"


class TcpTransport(_SocketTransport):
    """Stream socket; receives may return partial frames."""

    _socket_type = socket.SOCK_STREAM
    _label = "TCP"


def receive_buffer(
    transport: Transport, max_bytes: int, timeout_ms: int | None = None
) -> ByteBuffer:
    """Read once from transport into a fresh ByteBuffer."""
    return ByteBuffer(transport.receive(max_bytes, timeout_ms))
