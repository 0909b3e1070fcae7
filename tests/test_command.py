"""Tests for slash-command parsing."""

import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tgbot.command import Command, tokenize
from tgsdk.models import Update


def update_with(field: str, text: str) -> Update:
    return Update.model_validate(
        {
            "update_id": 1,
            field: {"message_id": 1, "date": 0, "chat": {"id": 9, "type": "group"}, "text": text},
        }
    )


class TestParse:
    """Command name, bot suffix and arguments."""

    def test_suffix_and_quoted_args(self) -> None:
        cmd = Command.parse('/start@mybot "hello world" 42')
        assert cmd is not None
        assert cmd.name == "start"
        assert cmd.bot_suffix == "mybot"
        assert cmd.args == ("hello world", "42")
        assert cmd.raw_args == '"hello world" 42'

    def test_plain_command(self) -> None:
        cmd = Command.parse("/help")
        assert cmd == Command(name="help")

    def test_name_is_lowercased(self) -> None:
        assert Command.parse("/StArT").name == "start"

    def test_single_quotes(self) -> None:
        assert Command.parse("/say 'a b' c").args == ("a b", "c")

    def test_unbalanced_quote_falls_back_to_whitespace(self) -> None:
        assert Command.parse('/say "oops here').args == ('"oops', "here")

    def test_hash_is_not_a_comment(self) -> None:
        assert Command.parse("/tag #python now").args == ("#python", "now")

    def test_newline_after_command(self) -> None:
        cmd = Command.parse("/note\nfirst line\nsecond")
        assert cmd.name == "note"
        assert cmd.args == ("first", "line", "second")

    def test_tab_after_command(self) -> None:
        cmd = Command.parse("/start\targ")
        assert cmd.name == "start"
        assert cmd.args == ("arg",)
        assert cmd.raw_args == "arg"

    def test_tab_after_suffix(self) -> None:
        cmd = Command.parse("/echo@relay_bot\t  hello there")
        assert cmd.name == "echo"
        assert cmd.bot_suffix == "relay_bot"
        assert cmd.args == ("hello", "there")

    @pytest.mark.parametrize("text", [None, "", "hello /start", "/", "/@bot", " /start"])
    def test_not_a_command(self, text) -> None:
        assert Command.parse(text) is None


class TestAddressing:
    """@suffix filtering against the bot's own username."""

    def test_other_bot(self) -> None:
        assert not Command.parse("/start@otherbot").is_addressed_to("mybot")

    def test_same_bot_case_insensitive(self) -> None:
        assert Command.parse("/start@MyBot").is_addressed_to("@mybot")

    def test_no_suffix(self) -> None:
        assert Command.parse("/start").is_addressed_to("mybot")

    def test_unknown_username_accepts_all(self) -> None:
        assert Command.parse("/start@otherbot").is_addressed_to(None)


class TestFromUpdate:
    """Only message and channel_post updates carry commands."""

    def test_message(self) -> None:
        assert Command.from_update(update_with("message", "/start")).name == "start"

    def test_channel_post(self) -> None:
        assert Command.from_update(update_with("channel_post", "/start")).name == "start"

    def test_edited_message_is_ignored(self) -> None:
        assert Command.from_update(update_with("edited_message", "/start")) is None


def test_tokenize_empty() -> None:
    assert tokenize("") == ()
