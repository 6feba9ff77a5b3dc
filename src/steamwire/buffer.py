"""Sequential little-endian reader over a received packet."""

from __future__ import annotations

import struct
from typing import Any

from steamwire.errors import UnderflowError

_BYTE = struct.Struct("<B")
_SHORT = struct.Struct("<h")
_LONG = struct.Struct("<i")
_UNSIGNED_LONG = struct.Struct("<I")
_LONG_LONG = struct.Struct("<Q")
_FLOAT = struct.Struct("<f")


class ByteBuffer:
    """A read cursor over raw packet bytes.

    A buffer is filled once per datagram or frame and read front to back.
    Reads that would run past the end raise UnderflowError and leave the
    position untouched.
    """

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytes(data)
        self._position = 0

    def __len__(self) -> int:
        return len(self._data)

    @property
    def position(self) -> int:
        """Current read offset."""
        return self._position

    @property
    def remaining(self) -> int:
        """Number of unread bytes."""
        return len(self._data) - self._position

    def has_remaining(self) -> bool:
        return self.remaining > 0

    def write(self, data: bytes) -> None:
        """Replace the buffer contents and rewind to the start."""
        self._data = bytes(data)
        self._position = 0

    def get_byte(self) -> int:
        return self._unpack(_BYTE)

    def get_short(self) -> int:
        return self._unpack(_SHORT)

    def get_long(self) -> int:
        return self._unpack(_LONG)

    def get_unsigned_long(self) -> int:
        return self._unpack(_UNSIGNED_LONG)

    def get_long_long(self) -> int:
        return self._unpack(_LONG_LONG)

    def get_float(self) -> float:
        return self._unpack(_FLOAT)

    def get_string(self) -> str:
        """Read a NUL-terminated string."""
        end = self._data.find(b"\x00", self._position)
        if end == -1:
            msg = f"Unterminated string at offset {self._position}"
            raise UnderflowError(msg)
        raw = self._data[self._position : end]
        self._position = end + 1
        return raw.decode("utf-8", errors="replace")

    def get(self) -> bytes:
        """Return every unread byte and move to the end."""
        data = self._data[self._position :]
        self._position = len(self._data)
        return data

    get_remaining = get

    def _unpack(self, fmt: struct.Struct) -> Any:
        if self.remaining < fmt.size:
            msg = (
                f"Cannot read {fmt.size} bytes at offset {self._position}: "
                f"only {self.remaining} left"
            )
            raise UnderflowError(msg)
        (value,) = fmt.unpack_from(self._data, self._position)
        self._position += fmt.size
        return value
