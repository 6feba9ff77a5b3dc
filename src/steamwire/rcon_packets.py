"""Source RCON wire protocol encoding and decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, ClassVar

from steamwire.buffer import ByteBuffer
from steamwire.errors import UnrecognizedPacketError

if TYPE_CHECKING:
    from collections.abc import Callable


class PacketType(IntEnum):
    """RCON packet types.

    SERVERDATA_EXECCOMMAND and SERVERDATA_AUTH_RESPONSE share the value 2;
    which one is meant depends on the direction of the packet.
    """

    RESPONSE_VALUE = 0
    EXECCOMMAND = 2
    AUTH_RESPONSE = 2  # noqa: PIE796
    AUTH = 3


_TRAILER = b"\x00\x00"

_PACKET_TYPES: dict[int, type[RconPacket]] = {}


def register(
    packet_type: PacketType,
) -> Callable[[type[RconPacket]], type[RconPacket]]:
    """Class decorator binding a reply class to its packet type."""

    def decorator(cls: type[RconPacket]) -> type[RconPacket]:
        _PACKET_TYPES[packet_type] = cls
        return cls

    return decorator


@dataclass(frozen=True)
class RconPacket:
    """A single RCON packet.

    Wire format: [length:i32][request_id:i32][type:i32][payload\\0\\0]
    Length covers everything after itself (req_id + type + payload + 2 nulls).
    """

    packet_type: ClassVar[int]

    request_id: int
    payload: str = ""

    def encode(self) -> bytes:
        """Encode the packet, including its length prefix, for transmission."""
        payload_bytes = self.payload.encode("utf-8") + _TRAILER
        length = 4 + 4 + len(payload_bytes)
        return struct.pack(
            f"<iii{len(payload_bytes)}s",
            length,
            self.request_id,
            self.packet_type,
            payload_bytes,
        )


@dataclass(frozen=True)
class RconAuthRequest(RconPacket):
    packet_type: ClassVar[int] = PacketType.AUTH


@dataclass(frozen=True)
class RconExecRequest(RconPacket):
    packet_type: ClassVar[int] = PacketType.EXECCOMMAND


@dataclass(frozen=True)
class RconTerminator(RconPacket):
    """Empty SERVERDATA_RESPONSE_VALUE sent after a command.

    The server answers packets in order, so its echo of this packet marks the
    end of a multi-packet command response.
    """

    packet_type: ClassVar[int] = PacketType.RESPONSE_VALUE


@register(PacketType.AUTH_RESPONSE)
@dataclass(frozen=True)
class RconAuthResponse(RconPacket):
    """Reply to an auth request; request_id is -1 when the password is wrong."""

    packet_type: ClassVar[int] = PacketType.AUTH_RESPONSE

    @property
    def authenticated(self) -> bool:
        return self.request_id != -1


@register(PacketType.RESPONSE_VALUE)
@dataclass(frozen=True)
class RconExecResponse(RconPacket):
    packet_type: ClassVar[int] = PacketType.RESPONSE_VALUE


def packet_from_data(data: bytes) -> RconPacket:
    """Decode a packet from one frame (excluding the 4-byte length prefix).

    Raises:
        UnderflowError: If the frame is too short to hold the header.
        UnrecognizedPacketError: If the packet type is not a known reply.
    """
    buf = ByteBuffer(data)
    request_id = buf.get_long()
    packet_type = buf.get_long()
    body = buf.get()
    if body.endswith(_TRAILER):
        body = body[: -len(_TRAILER)]

    packet_cls = _PACKET_TYPES.get(packet_type)
    if packet_cls is None:
        msg = f"Unknown RCON packet type {packet_type}"
        raise UnrecognizedPacketError(msg)
    return packet_cls(
        request_id=request_id,
        payload=body.decode("utf-8", errors="replace"),
    )
