"""UDP socket for the Source query protocol.

Replies larger than one datagram arrive split over several datagrams, each
with its own header. This socket reassembles them into a single payload
before handing it to the packet factory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from steamwire.config import DEFAULT_TIMEOUT_MS
from steamwire.errors import IncompleteAssemblyError, UnrecognizedPacketError
from steamwire.query_packets import (
    MAX_PACKET_SIZE,
    SINGLE_PACKET,
    SPLIT_PACKET,
    create_packet,
)
from steamwire.transport import Transport, UdpTransport, receive_buffer

if TYPE_CHECKING:
    from collections.abc import Callable

    from steamwire.buffer import ByteBuffer
    from steamwire.query_packets import QueryPacket

log = logging.getLogger(__name__)

_COMPRESSED_FLAG = 0x80000000


@dataclass
class _FragmentAssembly:
    """Fragments received so far for one split response."""

    request_id: int
    count: int
    fragments: dict[int, bytes] = field(default_factory=dict)
    # Read from the first fragment; never validated against the joined data
    declared_size: int | None = None

    @property
    def compressed(self) -> bool:
        return bool(self.request_id & _COMPRESSED_FLAG)

    @property
    def missing(self) -> list[int]:
        return [i for i in range(self.count) if i not in self.fragments]

    @property
    def complete(self) -> bool:
        return not self.missing

    def join(self) -> bytes:
        return b"".join(
            self.fragments[i] for i in range(self.count) if i in self.fragments
        )


class QuerySocket:
    """Sends query requests and reads (possibly split) replies."""

    def __init__(  # noqa: PLR0913
        self,
        host: str,
        port: int,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        packet_factory: Callable[[bytes], Any] = create_packet,
        strict_assembly: bool = False,
        transport: Transport | None = None,
    ) -> None:
        self._transport = transport or UdpTransport(host, port, timeout_ms)
        self.packet_factory = packet_factory
        self.strict_assembly = strict_assembly

    @property
    def host(self) -> str:
        return self._transport.host

    @property
    def port(self) -> int:
        return self._transport.port

    def __enter__(self) -> QuerySocket:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self, timeout_ms: int | None = None) -> None:
        self._transport.connect(timeout_ms)

    def close(self) -> None:
        self._transport.close()

    def send(self, packet: QueryPacket) -> None:
        """Send a request, opening the UDP socket on first use."""
        if not self._transport.connected:
            self.connect()
        log.debug('Sending packet of type "%s"', type(packet).__name__)
        self._transport.send(packet.encode())

    def get_reply(self, timeout_ms: int | None = None) -> Any:
        """Read one logical reply, reassembling split datagrams.

        Raises:
            TimeoutError: If no datagram arrives within the timeout.
            UnrecognizedPacketError: If the marker or packet header is unknown.
            IncompleteAssemblyError: If strict_assembly is set and a split
                reply ends before all of its fragments arrived.
        """
        buf = self._receive(timeout_ms)
        marker = buf.get_long()
        if marker == SINGLE_PACKET:
            payload = buf.get()
        elif marker == SPLIT_PACKET:
            payload = self._reassemble(buf, timeout_ms)
        else:
            msg = f"Unknown query packet marker {marker}"
            raise UnrecognizedPacketError(msg)

        packet = self.packet_factory(payload)
        log.debug('Got reply of type "%s"', type(packet).__name__)
        return packet

    def _receive(self, timeout_ms: int | None) -> ByteBuffer:
        return receive_buffer(self._transport, MAX_PACKET_SIZE, timeout_ms)

    def _reassemble(self, buf: ByteBuffer, timeout_ms: int | None) -> bytes:
        """Collect the fragments of the split reply that buf starts."""
        assemblies: dict[int, _FragmentAssembly] = {}
        assembly = self._store_fragment(buf, assemblies)

        while not assembly.complete:
            buf = self._receive(timeout_ms)
            if not buf.has_remaining():
                log.debug("Empty datagram while assembling #%d", assembly.request_id)
                break
            marker = buf.get_long()
            if marker != SPLIT_PACKET:
                log.debug(
                    "Unsplit packet (marker %d) while assembling #%d",
                    marker,
                    assembly.request_id,
                )
                break
            self._store_fragment(buf, assemblies)

        if not assembly.complete:
            if self.strict_assembly:
                raise IncompleteAssemblyError(assembly.request_id, assembly.missing)
            log.warning(
                "Split reply #%d is missing fragments %s; using partial data",
                assembly.request_id,
                assembly.missing,
            )
        if assembly.compressed:
            log.warning(
                "Split reply #%d is compressed (%s bytes declared); "
                "decompression is not supported",
                assembly.request_id,
                assembly.declared_size,
            )
        for other in assemblies.values():
            if other is not assembly:
                log.debug(
                    "Discarding fragments of unrelated reply #%d", other.request_id
                )

        return assembly.join()

    def _store_fragment(
        self, buf: ByteBuffer, assemblies: dict[int, _FragmentAssembly]
    ) -> _FragmentAssembly:
        """Parse a split header and file the fragment under its request id."""
        request_id = buf.get_long()
        count = buf.get_byte()
        index = buf.get_byte()
        buf.get_short()  # fragment size; joining uses the bytes actually received

        assembly = assemblies.get(request_id)
        if assembly is None:
            assembly = assemblies[request_id] = _FragmentAssembly(request_id, count)
        if index >= assembly.count:
            log.debug(
                "Dropping fragment %d of reply #%d, which has only %d",
                index + 1,
                request_id,
                assembly.count,
            )
            return assembly
        if index == 0:
            assembly.declared_size = buf.get_long()
        assembly.fragments[index] = buf.get()

        log.debug(
            "Received packet %d of %d for request #%d", index + 1, count, request_id
        )
        return assembly
