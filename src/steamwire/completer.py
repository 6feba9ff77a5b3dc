"""Source console command completer for prompt_toolkit.

Completes well-known server commands, the REPL's local commands, and player
names for commands that take a player argument.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prompt_toolkit.completion import Completer, Completion

if TYPE_CHECKING:
    from collections.abc import Iterable

    from prompt_toolkit.completion import CompleteEvent
    from prompt_toolkit.document import Document

# Local REPL commands that are not sent to the server
LOCAL_COMMANDS = {"exit", "quit", "reconnect"}

DEFAULT_COMMANDS = {
    "addip",
    "banid",
    "banip",
    "changelevel",
    "cvarlist",
    "echo",
    "exec",
    "find",
    "kick",
    "kickid",
    "listid",
    "listip",
    "maps",
    "mp_restartgame",
    "removeid",
    "removeip",
    "say",
    "sm_ban",
    "sm_kick",
    "stats",
    "status",
    "users",
    "writeid",
    "writeip",
}

# Commands whose first argument is a player name
PLAYER_COMMANDS = {"kick", "sm_ban", "sm_kick"}


class CommandCompleter(Completer):
    """Completer for RCON commands and player names.

    The player list is replaced from a background thread. Reference
    assignments are atomic under the GIL, so updates need no locking.
    """

    def __init__(self, commands: set[str] | None = None) -> None:
        self.commands = set(DEFAULT_COMMANDS if commands is None else commands)
        self.players: list[str] = []

    def update_players(self, players: list[str]) -> None:
        """Replace the player list atomically."""
        self.players = players

    def get_completions(
        self,
        document: Document,
        complete_event: CompleteEvent,  # noqa: ARG002
    ) -> Iterable[Completion]:
        """Yield completions based on the current input."""
        text = document.text_before_cursor
        words = text.split()
        typing_new_word = text.endswith(" ") if text else True

        if not words or (len(words) == 1 and not typing_new_word):
            prefix = words[0] if words else ""
            yield from self._complete_command(prefix)
            return

        # Only the first argument of a player command is completed
        arg_count = len(words) - 1 if typing_new_word else len(words) - 2
        if words[0] in PLAYER_COMMANDS and arg_count == 0:
            prefix = "" if typing_new_word else words[-1]
            yield from self._complete_players(prefix)

    def _complete_command(self, prefix: str) -> Iterable[Completion]:
        prefix_lower = prefix.lower()
        for cmd in sorted(self.commands | LOCAL_COMMANDS):
            if cmd.startswith(prefix_lower):
                yield Completion(cmd, start_position=-len(prefix))

    def _complete_players(self, prefix: str) -> Iterable[Completion]:
        prefix_lower = prefix.lower()
        for player in sorted(self.players):
            if player.lower().startswith(prefix_lower):
                yield Completion(player, start_position=-len(prefix))
