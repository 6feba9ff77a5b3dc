"""Source query protocol packets and the reply factory.

Every query datagram starts with a 4-byte marker: -1 for a complete packet,
-2 for one fragment of a split response. The byte after the -1 marker is the
packet type header, which selects the packet class registered for it.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from steamwire.buffer import ByteBuffer
from steamwire.errors import UnrecognizedPacketError

if TYPE_CHECKING:
    from collections.abc import Callable

SINGLE_PACKET = -1
SPLIT_PACKET = -2
MAX_PACKET_SIZE = 1400

# A2S_PLAYER / A2S_RULES with this challenge ask the server for a real one
CHALLENGE_REQUEST = -1

_PREFIX = struct.pack("<i", SINGLE_PACKET)
_INFO_QUERY = b"Source Engine Query\x00"

# Extra data flag bits trailing an info reply
_EDF_PORT = 0x80
_EDF_STEAM_ID = 0x10
_EDF_SPECTATOR = 0x40
_EDF_KEYWORDS = 0x20
_EDF_GAME_ID = 0x01

_PACKET_TYPES: dict[int, type[QueryPacket]] = {}


def register(header: bytes) -> Callable[[type[QueryPacket]], type[QueryPacket]]:
    """Class decorator binding a reply class to its one-byte header."""

    def decorator(cls: type[QueryPacket]) -> type[QueryPacket]:
        cls.header = header[0]
        _PACKET_TYPES[cls.header] = cls
        return cls

    return decorator


@dataclass(frozen=True)
class QueryPacket:
    """A query packet: a type header followed by type-specific data."""

    header: ClassVar[int]

    data: bytes = b""

    def encode(self) -> bytes:
        """Encode the packet as a single (unsplit) datagram."""
        return _PREFIX + bytes([self.header]) + self.data


@dataclass(frozen=True)
class InfoRequest(QueryPacket):
    header: ClassVar[int] = ord("T")

    @classmethod
    def create(cls, challenge: int | None = None) -> InfoRequest:
        data = _INFO_QUERY
        if challenge is not None:
            data += struct.pack("<i", challenge)
        return cls(data)


@dataclass(frozen=True)
class PlayersRequest(QueryPacket):
    header: ClassVar[int] = ord("U")

    @classmethod
    def create(cls, challenge: int = CHALLENGE_REQUEST) -> PlayersRequest:
        return cls(struct.pack("<i", challenge))


@dataclass(frozen=True)
class RulesRequest(QueryPacket):
    header: ClassVar[int] = ord("V")

    @classmethod
    def create(cls, challenge: int = CHALLENGE_REQUEST) -> RulesRequest:
        return cls(struct.pack("<i", challenge))


@register(b"A")
@dataclass(frozen=True)
class ChallengeResponse(QueryPacket):
    """S2C_CHALLENGE: the number to repeat in the next request."""

    @property
    def challenge(self) -> int:
        return ByteBuffer(self.data).get_long()


@register(b"I")
@dataclass(frozen=True)
class InfoResponse(QueryPacket):
    """S2A_INFO reply to A2S_INFO."""

    def info(self) -> dict[str, Any]:
        """Decode the server information fields.

        The optional extra data block is decoded when present; only the keys
        flagged by the server appear in the result.
        """
        buf = ByteBuffer(self.data)
        info: dict[str, Any] = {
            "protocol": buf.get_byte(),
            "name": buf.get_string(),
            "map": buf.get_string(),
            "folder": buf.get_string(),
            "game": buf.get_string(),
            "app_id": buf.get_short() & 0xFFFF,
            "players": buf.get_byte(),
            "max_players": buf.get_byte(),
            "bots": buf.get_byte(),
            "server_type": chr(buf.get_byte()),
            "environment": chr(buf.get_byte()),
            "password": bool(buf.get_byte()),
            "vac": bool(buf.get_byte()),
            "version": buf.get_string(),
        }
        if not buf.has_remaining():
            return info

        edf = buf.get_byte()
        if edf & _EDF_PORT:
            info["port"] = buf.get_short() & 0xFFFF
        if edf & _EDF_STEAM_ID:
            info["steam_id"] = buf.get_long_long()
        if edf & _EDF_SPECTATOR:
            info["spectator_port"] = buf.get_short() & 0xFFFF
            info["spectator_name"] = buf.get_string()
        if edf & _EDF_KEYWORDS:
            info["keywords"] = buf.get_string()
        if edf & _EDF_GAME_ID:
            info["game_id"] = buf.get_long_long()
        return info


@register(b"D")
@dataclass(frozen=True)
class PlayersResponse(QueryPacket):
    """S2A_PLAYER reply to A2S_PLAYER."""

    def players(self) -> list[dict[str, Any]]:
        buf = ByteBuffer(self.data)
        count = buf.get_byte()
        players = []
        for _ in range(count):
            players.append(
                {
                    "index": buf.get_byte(),
                    "name": buf.get_string(),
                    "score": buf.get_long(),
                    "duration": buf.get_float(),
                }
            )
        return players


@register(b"E")
@dataclass(frozen=True)
class RulesResponse(QueryPacket):
    """S2A_RULES reply to A2S_RULES."""

    def rules(self) -> dict[str, str]:
        buf = ByteBuffer(self.data)
        count = buf.get_short() & 0xFFFF
        rules = {}
        for _ in range(count):
            name = buf.get_string()
            rules[name] = buf.get_string()
        return rules


def create_packet(data: bytes) -> QueryPacket:
    """Build a reply packet from an assembled payload (marker stripped).

    Raises:
        UnrecognizedPacketError: If the payload is empty or its header byte
            is not a known reply type.
    """
    if not data:
        msg = "Empty query payload"
        raise UnrecognizedPacketError(msg)

    header = data[0]
    packet_cls = _PACKET_TYPES.get(header)
    if packet_cls is None:
        msg = f"Unknown query packet header 0x{header:02X}"
        raise UnrecognizedPacketError(msg)
    return packet_cls(data[1:])
