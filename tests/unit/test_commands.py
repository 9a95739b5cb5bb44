"""Unit tests for slash-command parsing and help text (src/wabridge/core/conversation/commands.py)."""

from __future__ import annotations

from src.wabridge.core.conversation.commands import (
    HELP_TEXT,
    is_command,
    parse_command,
    unknown_command_text,
)


class TestCommands:
    def test_is_command(self):
        assert is_command("/help")
        assert is_command("  /status")
        assert not is_command("help")

    def test_parse_command_lowercases_and_splits_args(self):
        parsed = parse_command("/MODE  normal please")
        assert parsed.command == "mode"
        assert parsed.args == "normal please"

    def test_parse_non_command(self):
        assert parse_command("hello") is None

    def test_parse_bare_slash(self):
        assert parse_command("/").command == ""

    def test_help_lists_commands(self):
        for name in ("/clear", "/mode", "/readonly", "/normal", "/yolo", "/status", "/help"):
            assert name in HELP_TEXT

    def test_unknown_command_text(self):
        assert unknown_command_text("foo").startswith("Unknown command: /foo")
