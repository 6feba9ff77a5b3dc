"""Tests for the RCON wire protocol."""

import struct

import pytest

from steamwire.errors import UnderflowError, UnrecognizedPacketError
from steamwire.rcon_packets import (
    PacketType,
    RconAuthRequest,
    RconAuthResponse,
    RconExecRequest,
    RconExecResponse,
    RconTerminator,
    packet_from_data,
)


class TestPacketEncode:
    def test_auth_packet(self):
        packet = RconAuthRequest(request_id=1, payload="password")
        data = packet.encode()

        length, request_id, packet_type = struct.unpack_from("<iii", data, 0)

        assert request_id == 1
        assert packet_type == PacketType.AUTH
        # Length = 4 (req_id) + 4 (type) + len("password") + 2 (nulls)
        assert length == 4 + 4 + 8 + 2
        assert len(data) == 4 + length

    def test_exec_packet(self):
        data = RconExecRequest(request_id=42, payload="status").encode()

        length, request_id, packet_type = struct.unpack_from("<iii", data, 0)
        assert request_id == 42
        assert packet_type == PacketType.EXECCOMMAND
        assert length == 4 + 4 + 6 + 2

    def test_terminator_is_empty_response_value(self):
        data = RconTerminator(request_id=9).encode()
        assert data == struct.pack("<iii", 10, 9, 0) + b"\x00\x00"

    def test_trailing_null_bytes(self):
        data = RconExecRequest(request_id=1, payload="test").encode()
        assert data[-2:] == b"\x00\x00"


class TestPacketFromData:
    def test_exec_response(self):
        body = struct.pack("<ii", 5, PacketType.RESPONSE_VALUE)
        body += b"hostname: 2Fort Pub\n\x00\x00"

        packet = packet_from_data(body)
        assert isinstance(packet, RconExecResponse)
        assert packet.request_id == 5
        assert packet.payload == "hostname: 2Fort Pub\n"

    def test_auth_response(self):
        body = struct.pack("<ii", 3, PacketType.AUTH_RESPONSE) + b"\x00\x00"

        packet = packet_from_data(body)
        assert isinstance(packet, RconAuthResponse)
        assert packet.authenticated

    def test_auth_failure(self):
        body = struct.pack("<ii", -1, PacketType.AUTH_RESPONSE) + b"\x00\x00"

        packet = packet_from_data(body)
        assert not packet.authenticated

    def test_missing_trailer(self):
        body = struct.pack("<ii", 1, PacketType.RESPONSE_VALUE) + b"abc"
        assert packet_from_data(body).payload == "abc"

    def test_unknown_type(self):
        body = struct.pack("<ii", 1, 7) + b"\x00\x00"
        with pytest.raises(UnrecognizedPacketError, match="type 7"):
            packet_from_data(body)

    def test_too_short(self):
        with pytest.raises(UnderflowError):
            packet_from_data(b"\x01\x00\x00\x00\x00")

    def test_invalid_utf8_is_replaced(self):
        body = struct.pack("<ii", 1, PacketType.RESPONSE_VALUE) + b"caf\xe9\x00\x00"
        assert packet_from_data(body).payload == "caf\ufffd"


class TestPacketRoundTrip:
    def test_roundtrip_unicode(self):
        original = RconExecResponse(request_id=7, payload="say héllo è")
        decoded = packet_from_data(original.encode()[4:])

        assert decoded == original
