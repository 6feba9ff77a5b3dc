"""Tests for the RCON command completer."""

from prompt_toolkit.completion import CompleteEvent
from prompt_toolkit.document import Document

from steamwire.completer import CommandCompleter


def _completions(completer, text):
    """Helper to get completion text values for a given input."""
    doc = Document(text, len(text))
    event = CompleteEvent()
    return [c.text for c in completer.get_completions(doc, event)]


class TestCommandCompletion:
    def test_completes_command_names(self):
        completer = CommandCompleter({"changelevel", "cvarlist", "status"})
        results = _completions(completer, "c")

        assert results == ["changelevel", "cvarlist"]

    def test_includes_local_commands(self):
        completer = CommandCompleter(set())
        assert "exit" in _completions(completer, "ex")

    def test_default_commands(self):
        completer = CommandCompleter()
        assert "status" in _completions(completer, "sta")

    def test_case_insensitive_prefix(self):
        completer = CommandCompleter({"status"})
        assert _completions(completer, "STA") == ["status"]

    def test_empty_prefix_shows_all(self):
        completer = CommandCompleter({"kick", "users"})
        results = _completions(completer, "")

        assert {"kick", "users", "exit", "quit", "reconnect"} <= set(results)


class TestPlayerCompletion:
    def test_completes_player_for_kick(self):
        completer = CommandCompleter()
        completer.update_players(["Alice", "alfred", "Bob"])

        assert _completions(completer, "kick al") == ["Alice", "alfred"]

    def test_new_word_lists_all_players(self):
        completer = CommandCompleter()
        completer.update_players(["Bob", "Alice"])

        assert _completions(completer, "kick ") == ["Alice", "Bob"]

    def test_only_first_argument(self):
        completer = CommandCompleter()
        completer.update_players(["Alice"])

        assert _completions(completer, "kick Alice ") == []

    def test_no_players_for_other_commands(self):
        completer = CommandCompleter()
        completer.update_players(["Alice"])

        assert _completions(completer, "changelevel ") == []
