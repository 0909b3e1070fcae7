"""Tests for the Pydantic Bot API models."""

import sys
import os

import pytest
from pydantic import ValidationError

# Ensure the project root is importable.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tgsdk.models import (
    BotCommand,
    BotCommandScope,
    BotCommandScopeType,
    CallbackQuery,
    Message,
    Update,
    UpdateKind,
    WebhookInfo,
)


def message_payload(text: str = "hi", chat_id: int = 42) -> dict:
    return {
        "message_id": 1,
        "date": 1700000000,
        "chat": {"id": chat_id, "type": "private"},
        "from": {"id": 5, "is_bot": False, "first_name": "Asha"},
        "text": text,
    }


# ── Update kinds ─────────────────────────────────────────────────────────────


class TestUpdateKind:
    """Every update reports exactly one kind."""

    @pytest.mark.parametrize(
        "field, kind",
        [
            ("message", UpdateKind.MESSAGE),
            ("edited_message", UpdateKind.EDITED_MESSAGE),
            ("channel_post", UpdateKind.CHANNEL_POST),
            ("edited_channel_post", UpdateKind.EDITED_CHANNEL_POST),
        ],
    )
    def test_message_kinds(self, field: str, kind: UpdateKind) -> None:
        update = Update.model_validate({"update_id": 1, field: message_payload()})
        assert update.kind is kind
        assert update.message_like is not None
        assert update.message_like.text == "hi"

    def test_callback_query(self) -> None:
        update = Update.model_validate(
            {
                "update_id": 2,
                "callback_query": {
                    "id": "cb1",
                    "from": {"id": 5, "is_bot": False, "first_name": "Asha"},
                    "chat_instance": "ci",
                    "data": "approve:5",
                    "message": message_payload(),
                },
            }
        )
        assert update.kind is UpdateKind.CALLBACK_QUERY
        assert isinstance(update.payload, CallbackQuery)
        assert update.payload.from_field.id == 5
        assert update.message_like is None

    def test_unknown_kind_keeps_raw_payload(self) -> None:
        update = Update.model_validate({"update_id": 3, "business_message": {"id": 9, "text": "new"}})
        assert update.kind is UpdateKind.UNKNOWN
        assert update.raw == {"business_message": {"id": 9, "text": "new"}}
        assert update.payload == update.raw

    def test_update_without_payload_is_unknown(self) -> None:
        assert Update.model_validate({"update_id": 4}).kind is UpdateKind.UNKNOWN

    def test_missing_update_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Update.model_validate({"message": message_payload()})

    def test_kind_values_are_wire_names(self) -> None:
        assert UpdateKind("callback_query") is UpdateKind.CALLBACK_QUERY
        assert UpdateKind.MY_CHAT_MEMBER.value == "my_chat_member"


# ── Message ──────────────────────────────────────────────────────────────────


class TestMessage:
    """Validate aliasing and round trips of Message."""

    def test_from_alias(self) -> None:
        msg = Message.model_validate(message_payload())
        assert msg.from_field is not None
        assert msg.from_field.first_name == "Asha"
        dumped = msg.model_dump(by_alias=True, exclude_none=True)
        assert "from" in dumped
        assert "from_field" not in dumped

    def test_unknown_fields_ignored(self) -> None:
        payload = message_payload()
        payload["brand_new_field"] = {"x": 1}
        assert Message.model_validate(payload).message_id == 1

    def test_reply_nesting(self) -> None:
        payload = message_payload("reply")
        payload["reply_to_message"] = message_payload("original")
        msg = Message.model_validate(payload)
        assert msg.reply_to_message is not None
        assert msg.reply_to_message.text == "original"


# ── BotCommand ───────────────────────────────────────────────────────────────


class TestBotCommand:
    """Command names and descriptions are validated."""

    def test_valid(self) -> None:
        cmd = BotCommand(command="start", description="Start the bot")
        assert cmd.command == "start"

    def test_leading_slash_stripped(self) -> None:
        assert BotCommand(command="/help", description="Show help").command == "help"

    @pytest.mark.parametrize("name", ["", "Start", "with space", "x" * 33, "dash-name"])
    def test_invalid_name(self, name: str) -> None:
        with pytest.raises(ValidationError):
            BotCommand(command=name, description="Valid description")

    @pytest.mark.parametrize("description", ["", "ab", "x" * 257])
    def test_invalid_description(self, description: str) -> None:
        with pytest.raises(ValidationError):
            BotCommand(command="start", description=description)


class TestBotCommandScope:
    """Scopes serialize with a type tag and check their targets."""

    def test_wire_form(self) -> None:
        assert BotCommandScope.all_group_chats().model_dump(exclude_none=True, mode="json") == {"type": "all_group_chats"}
        assert BotCommandScope.chat_member("@relay_group", 9).model_dump(exclude_none=True, mode="json") == {
            "type": "chat_member",
            "chat_id": "@relay_group",
            "user_id": 9,
        }

    def test_default_scope(self) -> None:
        assert BotCommandScope().type is BotCommandScopeType.DEFAULT
        assert BotCommandScope.default() == BotCommandScope()

    def test_parse_from_wire(self) -> None:
        scope = BotCommandScope.model_validate({"type": "chat", "chat_id": -100})
        assert scope == BotCommandScope.chat(-100)

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "chat"},
            {"type": "chat_administrators"},
            {"type": "chat_member", "chat_id": 5},
            {"type": "all_private_chats", "chat_id": 5},
            {"type": "everyone"},
        ],
    )
    def test_invalid_targets(self, payload: dict) -> None:
        with pytest.raises(ValidationError):
            BotCommandScope.model_validate(payload)


class TestWebhookInfo:
    def test_minimal(self) -> None:
        info = WebhookInfo(url="", has_custom_certificate=False, pending_update_count=0)
        assert info.last_error_message is None
