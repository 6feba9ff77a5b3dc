"""High-level query and RCON clients built on the protocol sockets."""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from steamwire import errors
from steamwire.config import DEFAULT_PORT, DEFAULT_TIMEOUT_MS
from steamwire.query_packets import (
    ChallengeResponse,
    InfoRequest,
    InfoResponse,
    PlayersRequest,
    PlayersResponse,
    RulesRequest,
    RulesResponse,
)
from steamwire.query_socket import QuerySocket
from steamwire.rcon_packets import (
    RconAuthRequest,
    RconAuthResponse,
    RconExecRequest,
    RconExecResponse,
    RconTerminator,
)
from steamwire.rcon_socket import RconSocket

if TYPE_CHECKING:
    from steamwire.rcon_packets import RconPacket

log = logging.getLogger(__name__)

_request_id_counter = itertools.count(1)

_ReplyT = TypeVar("_ReplyT")


def _expect(reply: object, reply_cls: type[_ReplyT]) -> _ReplyT:
    if not isinstance(reply, reply_cls):
        msg = f"Expected {reply_cls.__name__}, got {type(reply).__name__}"
        raise errors.UnrecognizedPacketError(msg)
    return reply


class QueryClient:
    """Fetches server info, players and rules over the query protocol."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        socket: QuerySocket | None = None,
    ) -> None:
        self._socket = socket or QuerySocket(host, port, timeout_ms=timeout_ms)

    def __enter__(self) -> QueryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._socket.close()

    def info(self) -> dict[str, Any]:
        """Return the A2S_INFO fields of the server."""
        reply = self._challenged_request(InfoRequest, InfoResponse)
        return reply.info()

    def challenge(self) -> int:
        """Ask the server for a challenge number."""
        self._socket.send(PlayersRequest.create())
        return _expect(self._socket.get_reply(), ChallengeResponse).challenge

    def players(self) -> list[dict[str, Any]]:
        """Return the players currently on the server."""
        reply = self._challenged_request(PlayersRequest, PlayersResponse)
        return reply.players()

    def rules(self) -> dict[str, str]:
        """Return the server's public cvars."""
        reply = self._challenged_request(RulesRequest, RulesResponse)
        return reply.rules()

    def _challenged_request(
        self, request_cls: Any, reply_cls: type[_ReplyT]
    ) -> _ReplyT:
        """Send a request, repeating it with a challenge if the server asks.

        Servers that do not use challenges answer the first request directly.
        """
        self._socket.send(request_cls.create())
        reply = self._socket.get_reply()
        if isinstance(reply, ChallengeResponse):
            log.debug("Repeating %s with challenge", request_cls.__name__)
            self._socket.send(request_cls.create(reply.challenge))
            reply = self._socket.get_reply()
        return _expect(reply, reply_cls)


class RconClient:
    """Manages an authenticated RCON session with a Source server."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        socket: RconSocket | None = None,
    ) -> None:
        self._socket = socket or RconSocket(host, port, timeout_ms=timeout_ms)
        self.authenticated = False

    @property
    def host(self) -> str:
        return self._socket.host

    @property
    def port(self) -> int:
        return self._socket.port

    @property
    def connected(self) -> bool:
        return self._socket.connected

    def __enter__(self) -> RconClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self) -> None:
        """Open a fresh connection. The new session is unauthenticated."""
        self.authenticated = False
        self._socket.connect()

    def close(self) -> None:
        self.authenticated = False
        self._socket.close()

    def authenticate(self, password: str) -> None:
        """Authenticate the session.

        Source servers send an empty response value ahead of the auth
        response; it is skipped.

        Raises:
            AuthenticationError: If the server rejects the password.
        """
        request_id = next(_request_id_counter)
        self._send(RconAuthRequest(request_id=request_id, payload=password))

        while True:
            response = self._reply()
            if isinstance(response, RconAuthResponse):
                break

        if not response.authenticated:
            self.authenticated = False
            msg = "Authentication failed: incorrect RCON password"
            raise errors.AuthenticationError(msg)
        self.authenticated = True

    def execute(self, command: str) -> str:
        """Run a command and return the full response text.

        After the command a terminator packet is sent. The server answers
        packets in order, so once the terminator's echo arrives every response
        packet for the command has been received.
        """
        request_id = next(_request_id_counter)
        terminator_id = next(_request_id_counter)

        self._send(RconExecRequest(request_id=request_id, payload=command))
        self._send(RconTerminator(request_id=terminator_id))

        fragments: list[str] = []
        while True:
            response = self._reply()
            if response.request_id == terminator_id:
                break
            if response.request_id == request_id and isinstance(
                response, RconExecResponse
            ):
                fragments.append(response.payload)

        return "".join(fragments)

    def _send(self, packet: RconPacket) -> bool:
        """Send a packet. Returns True if a new connection had to be opened."""
        reconnected = self._socket.ensure_connected()
        if reconnected:
            log.debug("Opened a new RCON connection to %s:%d", self.host, self.port)
            self.authenticated = False
        self._socket.send(packet)
        return reconnected

    def _reply(self) -> Any:
        try:
            return self._socket.reply()
        except (errors.NoAuthError, errors.BanError):
            self.authenticated = False
            raise
