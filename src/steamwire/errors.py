"""Exceptions raised by the query and RCON transports."""

from __future__ import annotations


class SteamError(Exception):
    """Base exception for all steamwire errors."""


class TimeoutError(SteamError):  # noqa: A001
    """Raised when connecting or receiving exceeds the configured deadline."""


class ConnectionError(SteamError):  # noqa: A001
    """Raised on transport failures other than a timeout."""


class PeerResetError(ConnectionError):
    """Raised when the peer forcibly reset the connection."""


class NoAuthError(SteamError):
    """Raised when the server dropped an authenticated RCON session."""


class BanError(SteamError):
    """Raised when the server reset the RCON connection, i.e. banned our IP."""


class AuthenticationError(SteamError):
    """Raised when the server rejects the RCON password."""


class UnderflowError(SteamError):
    """Raised when a read runs past the end of a packet."""


class UnrecognizedPacketError(SteamError):
    """Raised when a packet header does not match any known packet type."""


class IncompleteAssemblyError(SteamError):
    """Raised when a split query response ends before all fragments arrived."""

    def __init__(self, request_id: int, missing: list[int]) -> None:
        self.request_id = request_id
        self.missing = missing
        super().__init__(
            f"Split response #{request_id} is missing fragments {missing}"
        )


class ConfigError(SteamError):
    """Raised when the configuration file contains invalid values."""
