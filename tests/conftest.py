"""Shared fixtures: in-memory transports standing in for real sockets."""

import pytest

from steamwire import errors


class FakeDatagramTransport:
    """Hands out one queued datagram per receive.

    Queued exceptions are raised in place of a datagram. Once the queue is
    empty, receive times out like a silent server.
    """

    def __init__(self, *datagrams, host="gameserver.local", port=27015):
        self.host = host
        self.port = port
        self.timeout_ms = 1000
        self.incoming = list(datagrams)
        self.sent = []
        self.receive_sizes = []
        self.connect_calls = 0
        self.connected = False

    def connect(self, timeout_ms=None):
        self.connect_calls += 1
        self.connected = True

    def send(self, data):
        self.sent.append(data)

    def receive(self, max_bytes, timeout_ms=None):
        self.receive_sizes.append(max_bytes)
        if not self.incoming:
            raise errors.TimeoutError("Receiving timed out")
        item = self.incoming.pop(0)
        if isinstance(item, Exception):
            raise item
        return item[:max_bytes]

    def close(self):
        self.connected = False


class FakeStreamTransport:
    """A TCP-like byte stream that yields at most chunk_size bytes per read.

    Queued exceptions are raised when the stream reaches them. An exhausted
    stream returns b"" like a peer that closed the connection.
    """

    def __init__(self, *items, chunk_size=None, host="gameserver.local", port=27015):
        self.host = host
        self.port = port
        self.timeout_ms = 1000
        self.items = list(items)
        self.chunk_size = chunk_size
        self.buffer = b""
        self.sent = []
        self.connect_calls = 0
        self.close_calls = 0
        self.connected = False
        self.connect_error = None
        self.send_error = None

    def connect(self, timeout_ms=None):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def send(self, data):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)

    def receive(self, max_bytes, timeout_ms=None):
        while not self.buffer and self.items:
            item = self.items.pop(0)
            if isinstance(item, Exception):
                raise item
            self.buffer += item
        size = min(max_bytes, self.chunk_size or max_bytes)
        chunk, self.buffer = self.buffer[:size], self.buffer[size:]
        return chunk

    def close(self):
        self.close_calls += 1
        self.connected = False


@pytest.fixture
def datagram_transport():
    """Factory for FakeDatagramTransport instances."""
    return FakeDatagramTransport


@pytest.fixture
def stream_transport():
    """Factory for FakeStreamTransport instances."""
    return FakeStreamTransport
