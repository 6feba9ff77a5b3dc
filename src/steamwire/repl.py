"""Interactive RCON REPL using prompt_toolkit."""

from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings

if TYPE_CHECKING:
    from prompt_toolkit.key_binding.key_processor import KeyPressEvent

from steamwire import errors
from steamwire.client import QueryClient, RconClient
from steamwire.completer import CommandCompleter
from steamwire.config import HISTORY_FILE, ensure_config_dir

log = logging.getLogger(__name__)

MAX_RECONNECT_ATTEMPTS = 3
_PLAYER_REFRESH_INTERVAL = 60


def _create_key_bindings() -> KeyBindings:
    """Create custom key bindings for the REPL.

    Ctrl+C and Ctrl+D abandon the current line if it has text, and exit the
    REPL if it is empty.
    """
    kb = KeyBindings()

    def _abandon_or_exit(event: KeyPressEvent, exception: type[BaseException]) -> None:
        buffer = event.app.current_buffer
        if buffer.text:
            print()
            buffer.reset()
            event.app.renderer.reset()
        else:
            event.app.exit(exception=exception)

    @kb.add("c-c")
    def _(event: KeyPressEvent) -> None:
        _abandon_or_exit(event, KeyboardInterrupt)

    @kb.add("c-d")
    def _(event: KeyPressEvent) -> None:
        _abandon_or_exit(event, EOFError)

    return kb


@dataclass(frozen=True)
class _QueryTarget:
    """Where the background thread fetches player names from."""

    host: str
    port: int
    timeout_ms: int


def run_repl(
    client: RconClient,
    password: str,
    *,
    query_port: int,
    timeout_ms: int,
) -> None:
    """Run the interactive REPL loop.

    Args:
        client: An already-connected and authenticated RconClient.
        password: The RCON password, kept for re-authentication.
        query_port: UDP query port used to refresh player names.
        timeout_ms: Timeout for the background query socket.
    """
    ensure_config_dir()

    completer = CommandCompleter()
    _start_player_refresh(_QueryTarget(client.host, query_port, timeout_ms), completer)

    session: PromptSession[str] = PromptSession(
        history=FileHistory(str(HISTORY_FILE)),
        completer=completer,
        complete_while_typing=False,
        key_bindings=_create_key_bindings(),
    )

    while True:
        try:
            text = session.prompt(HTML("<ansigreen>rcon</ansigreen>> ")).strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye.")
            break

        if not text:
            continue

        if text in ("exit", "quit"):
            print("Goodbye.")
            break

        if text == "reconnect":
            _reconnect(client, password)
            continue

        if not execute_command(client, text, password):
            break


def execute_command(client: RconClient, text: str, password: str) -> bool:
    """Execute a command, re-authenticating once if the session was lost.

    Returns False if the REPL should stop (the server banned this client).
    """
    try:
        _print_response(client.execute(text))
    except errors.BanError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False
    except (errors.NoAuthError, errors.ConnectionError, errors.TimeoutError) as e:
        print(f"Session lost ({e}). Attempting to reconnect...", file=sys.stderr)
        if not _reconnect(client, password):
            return True
        try:
            _print_response(client.execute(text))
        except errors.SteamError as e:
            print(f"Failed to execute command after reconnection: {e}", file=sys.stderr)
    return True


def _print_response(response: str) -> None:
    if response:
        print(response.rstrip("\n"))


def _start_player_refresh(target: _QueryTarget, completer: CommandCompleter) -> None:
    """Start a daemon thread that keeps the completer's player names fresh."""
    thread = threading.Thread(
        target=_refresh_players,
        args=(target, completer),
        daemon=True,
    )
    thread.start()


def _refresh_players(target: _QueryTarget, completer: CommandCompleter) -> None:
    """Poll the query port for player names using a separate socket."""
    with QueryClient(target.host, target.port, timeout_ms=target.timeout_ms) as query:
        while True:
            try:
                players = query.players()
                completer.update_players([p["name"] for p in players if p["name"]])
            except errors.SteamError:
                log.debug("Failed to refresh player list", exc_info=True)
            time.sleep(_PLAYER_REFRESH_INTERVAL)


def _reconnect(client: RconClient, password: str) -> bool:
    """Reconnect and re-authenticate with exponential backoff.

    Returns True if the session was restored.
    """
    client.close()
    for attempt in range(MAX_RECONNECT_ATTEMPTS):
        delay = 2**attempt
        print(
            f"Reconnecting in {delay}s "
            f"(attempt {attempt + 1}/{MAX_RECONNECT_ATTEMPTS})..."
        )
        time.sleep(delay)
        try:
            client.connect()
            client.authenticate(password)
        except (errors.AuthenticationError, errors.BanError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return False
        except errors.SteamError:
            log.debug("Reconnect attempt %d failed", attempt + 1, exc_info=True)
            continue
        else:
            print("Reconnected successfully.")
            return True

    print(
        "Failed to reconnect. Use 'reconnect' to try again, or 'exit' to quit.",
        file=sys.stderr,
    )
    return False
