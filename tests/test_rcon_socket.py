"""Tests for RCON framing and connection state handling."""

import struct

import pytest

from steamwire import errors
from steamwire.rcon_packets import RconExecRequest, RconExecResponse
from steamwire.rcon_socket import ConnectionState, RconSocket


def _frame(payload: bytes) -> bytes:
    return struct.pack("<i", len(payload)) + payload


def _socket(transport, **kwargs) -> RconSocket:
    return RconSocket(transport.host, transport.port, transport=transport, **kwargs)


class TestConnect:
    def test_starts_unconnected(self, stream_transport):
        sock = _socket(stream_transport())

        assert sock.state is ConnectionState.UNCONNECTED
        assert not sock.connected

    def test_connect(self, stream_transport):
        transport = stream_transport()
        sock = _socket(transport)
        sock.connect()

        assert sock.state is ConnectionState.CONNECTED
        assert transport.connect_calls == 1

    def test_connect_timeout_stays_unconnected(self, stream_transport):
        transport = stream_transport()
        transport.connect_error = errors.TimeoutError("Connecting timed out")
        sock = _socket(transport)

        with pytest.raises(errors.TimeoutError):
            sock.connect()
        assert sock.state is ConnectionState.UNCONNECTED

    def test_close_is_idempotent(self, stream_transport):
        sock = _socket(stream_transport())
        sock.close()
        sock.connect()
        sock.close()
        sock.close()

        assert sock.state is ConnectionState.UNCONNECTED


class TestSend:
    def test_first_send_connects_exactly_once(self, stream_transport):
        transport = stream_transport()
        sock = _socket(transport)
        packet = RconExecRequest(request_id=1, payload="status")

        sock.send(packet)
        sock.send(packet)

        assert transport.connect_calls == 1
        assert transport.sent == [packet.encode(), packet.encode()]

    def test_send_after_close_reconnects(self, stream_transport):
        transport = stream_transport()
        sock = _socket(transport)
        sock.send(RconExecRequest(request_id=1, payload="a"))
        sock.close()
        sock.send(RconExecRequest(request_id=2, payload="b"))

        assert transport.connect_calls == 2
        assert sock.connected

    def test_send_failure_closes(self, stream_transport):
        transport = stream_transport()
        transport.send_error = errors.ConnectionError("Broken pipe")
        sock = _socket(transport)

        with pytest.raises(errors.ConnectionError):
            sock.send(RconExecRequest(request_id=1, payload="a"))
        assert sock.state is ConnectionState.UNCONNECTED


class TestReply:
    def test_pong_frame(self, stream_transport):
        transport = stream_transport(b"\x05\x00\x00\x00pong\x00")
        sock = _socket(transport, packet_factory=lambda data: data)
        sock.connect()

        assert sock.reply() == b"pong\x00"

    def test_decodes_packet(self, stream_transport):
        response = RconExecResponse(request_id=3, payload="hostname: 2Fort Pub")
        sock = _socket(stream_transport(response.encode()))
        sock.connect()

        assert sock.reply() == response

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 7, 64])
    def test_chunked_frame_matches_single_read(self, stream_transport, chunk_size):
        payload = bytes(range(256)) * 20
        single = _socket(
            stream_transport(_frame(payload)), packet_factory=lambda data: data
        )
        chunked = _socket(
            stream_transport(_frame(payload), chunk_size=chunk_size),
            packet_factory=lambda data: data,
        )
        single.connect()
        chunked.connect()

        assert chunked.reply() == single.reply() == payload

    def test_consecutive_frames(self, stream_transport):
        transport = stream_transport(_frame(b"one"), _frame(b"two"), chunk_size=5)
        sock = _socket(transport, packet_factory=lambda data: data)
        sock.connect()

        assert sock.reply() == b"one"
        assert sock.reply() == b"two"

    def test_zero_length_raises_no_auth(self, stream_transport):
        transport = stream_transport(b"\x00\x00\x00\x00")
        sock = _socket(transport)
        sock.connect()

        with pytest.raises(errors.NoAuthError):
            sock.reply()
        assert sock.state is ConnectionState.UNCONNECTED

        sock.send(RconExecRequest(request_id=1, payload="status"))
        assert transport.connect_calls == 2

    def test_closed_before_data_raises_no_auth(self, stream_transport):
        sock = _socket(stream_transport())
        sock.connect()

        with pytest.raises(errors.NoAuthError):
            sock.reply()
        assert not sock.connected

    def test_reset_raises_ban(self, stream_transport):
        transport = stream_transport(errors.PeerResetError("connection reset by peer"))
        sock = _socket(transport)
        sock.connect()

        with pytest.raises(errors.BanError):
            sock.reply()
        assert sock.state is ConnectionState.UNCONNECTED

    def test_closed_mid_frame(self, stream_transport):
        transport = stream_transport(struct.pack("<i", 10) + b"short")
        sock = _socket(transport)
        sock.connect()

        with pytest.raises(errors.ConnectionError, match="5 bytes of the frame left"):
            sock.reply()
        assert sock.state is ConnectionState.UNCONNECTED

    def test_split_length_prefix(self, stream_transport):
        transport = stream_transport(b"\x03\x00", b"\x00\x00abc", chunk_size=2)
        sock = _socket(transport, packet_factory=lambda data: data)
        sock.connect()

        assert sock.reply() == b"abc"

    def test_negative_length(self, stream_transport):
        sock = _socket(stream_transport(struct.pack("<i", -5)))
        sock.connect()

        with pytest.raises(errors.ConnectionError, match="Invalid RCON frame length"):
            sock.reply()

    def test_timeout_closes(self, stream_transport):
        transport = stream_transport(errors.TimeoutError("Receiving timed out"))
        sock = _socket(transport)
        sock.connect()

        with pytest.raises(errors.TimeoutError):
            sock.reply()
        assert sock.state is ConnectionState.UNCONNECTED
