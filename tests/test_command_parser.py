"""Tests for slash command parsing."""

import pytest

from pm2_pilot.interactive.command_parser import COMMANDS, CommandParser


@pytest.fixture
def parser():
    return CommandParser()


class TestCommandParser:
    """Test CommandParser.parse."""

    def test_known_command_with_args(self, parser):
        command = parser.parse("/logs api-server 100")

        assert command.command == "logs"
        assert command.args == ["api-server", "100"]
        assert command.target == "api-server"
        assert command.is_known
        assert command.confidence == 1.0

    def test_slash_is_optional(self, parser):
        assert parser.parse("status").command == "status"

    def test_command_is_case_insensitive(self, parser):
        command = parser.parse("/RESTART Api")
        assert command.command == "restart"
        assert command.args == ["Api"]

    @pytest.mark.parametrize("alias,command", [
        ("ps", "status"),
        ("ls", "status"),
        ("reboot", "restart"),
        ("kill", "stop"),
        ("tail", "logs"),
        ("check", "health"),
        ("search", "grep"),
        ("diagnose", "errors"),
        ("q", "exit"),
        ("?", "help"),
    ])
    def test_aliases(self, parser, alias, command):
        assert parser.parse(f"/{alias}").command == command

    @pytest.mark.parametrize("text", ["/", "   ", "/  "])
    def test_empty_input_is_help(self, parser, text):
        command = parser.parse(text)
        assert command.command == "help"
        assert command.target is None

    def test_unknown_command_suggestions(self, parser):
        command = parser.parse("/restrat api")

        assert not command.is_known
        assert 0 < command.confidence < 1
        assert command.suggestions[0] == "/restart"
        assert command.args == ["api"]

    def test_unknown_command_without_suggestions(self, parser):
        command = parser.parse("/xyzzy")

        assert not command.is_known
        assert command.suggestions == []

    def test_suggestions_resolve_aliases(self, parser):
        assert parser.suggest("tial") == ["/logs"]

    def test_help_text_lists_every_command(self, parser):
        text = parser.help_text()
        for name in COMMANDS:
            assert f"/{name}" in text

    def test_reload_is_not_a_restart_alias(self, parser):
        command = parser.parse("/reload api")
        assert command.command == "reload"
        assert command.target == "api"
