"""Method descriptors — one typed value per remote call.

A :class:`MethodDescriptor` names a Bot API method, carries its parameters
in order, and records the type ``result`` must validate into.  The module
also ships builders for the methods the engine itself relies on and for
the most common outgoing calls; any other method can be described with
:meth:`MethodDescriptor.build`.
"""

from __future__ import annotations

import dataclasses
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from tgsdk.files import InputFile, contains_upload
from tgsdk.models import (
    BotCommand,
    BotCommandScope,
    File,
    InlineKeyboardMarkup,
    Message,
    MessageId,
    Update,
    User,
    WebhookInfo,
)

ChatId = Union[int, str]


@dataclasses.dataclass(frozen=True)
class MethodDescriptor:
    """An immutable description of one remote call.

    Attributes:
        name: Wire method name, e.g. ``"sendMessage"``.
        params: Read-only, insertion-ordered parameter mapping.
        result_type: Type the envelope ``result`` is validated into.
        wait: Server-side long-wait in seconds (``getUpdates`` only).
        idempotent: Whether repeating the call cannot duplicate side effects.
    """

    name: str
    params: Mapping[str, Any]
    result_type: Any = Any
    wait: float = 0
    idempotent: bool = False

    @classmethod
    def build(
        cls,
        name: str,
        params: Optional[Mapping[str, Any]] = None,
        result_type: Any = Any,
        *,
        wait: float = 0,
        idempotent: bool = False,
    ) -> MethodDescriptor:
        """Create a descriptor, dropping parameters whose value is ``None``."""
        cleaned = {key: value for key, value in (params or {}).items() if value is not None}
        return cls(name, MappingProxyType(cleaned), result_type, wait, idempotent)

    @property
    def has_uploads(self) -> bool:
        return any(contains_upload(value) for value in self.params.values())


def _allowed(allowed_updates: Optional[Iterable[str]]) -> Optional[List[str]]:
    if allowed_updates is None:
        return None
    return [getattr(item, "value", item) for item in allowed_updates]


# ── Update delivery ──────────────────────────────────────────────────────────


def get_updates(
    offset: Optional[int] = None,
    limit: Optional[int] = None,
    timeout: int = 0,
    allowed_updates: Optional[Iterable[str]] = None,
) -> MethodDescriptor:
    """Long-poll for updates; ``timeout`` is the server-side wait in seconds."""
    return MethodDescriptor.build(
        "getUpdates",
        {
            "offset": offset,
            "limit": limit,
            "timeout": timeout,
            "allowed_updates": _allowed(allowed_updates),
        },
        List[Update],
        wait=timeout,
        idempotent=True,
    )


def set_webhook(
    url: str,
    certificate: Optional[InputFile] = None,
    ip_address: Optional[str] = None,
    max_connections: Optional[int] = None,
    allowed_updates: Optional[Iterable[str]] = None,
    drop_pending_updates: Optional[bool] = None,
    secret_token: Optional[str] = None,
) -> MethodDescriptor:
    return MethodDescriptor.build(
        "setWebhook",
        {
            "url": url,
            "certificate": certificate,
            "ip_address": ip_address,
            "max_connections": max_connections,
            "allowed_updates": _allowed(allowed_updates),
            "drop_pending_updates": drop_pending_updates,
            "secret_token": secret_token,
        },
        bool,
        idempotent=True,
    )


def delete_webhook(drop_pending_updates: Optional[bool] = None) -> MethodDescriptor:
    return MethodDescriptor.build(
        "deleteWebhook", {"drop_pending_updates": drop_pending_updates}, bool, idempotent=True
    )


def get_webhook_info() -> MethodDescriptor:
    return MethodDescriptor.build("getWebhookInfo", None, WebhookInfo, idempotent=True)


# ── Bot identity & commands ──────────────────────────────────────────────────


def get_me() -> MethodDescriptor:
    return MethodDescriptor.build("getMe", None, User, idempotent=True)


def set_my_commands(
    commands: Sequence[BotCommand],
    scope: Optional[BotCommandScope] = None,
    language_code: Optional[str] = None,
) -> MethodDescriptor:
    """Replace the command menu for *scope* and *language_code*.

    Without a scope the default menu is changed; without a language code
    the menu applies to users with no dedicated one.
    """
    params = {"commands": list(commands), "scope": scope, "language_code": language_code}
    return MethodDescriptor.build("setMyCommands", params, bool, idempotent=True)


def get_my_commands(scope: Optional[BotCommandScope] = None, language_code: Optional[str] = None) -> MethodDescriptor:
    params = {"scope": scope, "language_code": language_code}
    return MethodDescriptor.build("getMyCommands", params, List[BotCommand], idempotent=True)


def delete_my_commands(scope: Optional[BotCommandScope] = None, language_code: Optional[str] = None) -> MethodDescriptor:
    params = {"scope": scope, "language_code": language_code}
    return MethodDescriptor.build("deleteMyCommands", params, bool, idempotent=True)


# ── Outgoing messages ────────────────────────────────────────────────────────


def send_message(
    chat_id: ChatId,
    text: str,
    parse_mode: Optional[str] = None,
    disable_notification: Optional[bool] = None,
    reply_to_message_id: Optional[int] = None,
    reply_markup: Optional[Union[InlineKeyboardMarkup, Mapping[str, Any]]] = None,
) -> MethodDescriptor:
    return MethodDescriptor.build(
        "sendMessage",
        {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_notification": disable_notification,
            "reply_to_message_id": reply_to_message_id,
            "reply_markup": reply_markup,
        },
        Message,
    )


def _send_file(
    method: str,
    field: str,
    chat_id: ChatId,
    file: InputFile,
    caption: Optional[str],
    parse_mode: Optional[str],
    reply_to_message_id: Optional[int],
    reply_markup: Optional[Union[InlineKeyboardMarkup, Mapping[str, Any]]],
    extra: Optional[Mapping[str, Any]] = None,
) -> MethodDescriptor:
    params: dict = {"chat_id": chat_id, field: file, "caption": caption, "parse_mode": parse_mode}
    params.update(extra or {})
    params["reply_to_message_id"] = reply_to_message_id
    params["reply_markup"] = reply_markup
    return MethodDescriptor.build(method, params, Message)


def send_photo(
    chat_id: ChatId,
    photo: InputFile,
    caption: Optional[str] = None,
    parse_mode: Optional[str] = None,
    reply_to_message_id: Optional[int] = None,
    reply_markup: Optional[Union[InlineKeyboardMarkup, Mapping[str, Any]]] = None,
) -> MethodDescriptor:
    return _send_file("sendPhoto", "photo", chat_id, photo, caption, parse_mode, reply_to_message_id, reply_markup)


def send_document(
    chat_id: ChatId,
    document: InputFile,
    caption: Optional[str] = None,
    parse_mode: Optional[str] = None,
    disable_content_type_detection: Optional[bool] = None,
    reply_to_message_id: Optional[int] = None,
    reply_markup: Optional[Union[InlineKeyboardMarkup, Mapping[str, Any]]] = None,
) -> MethodDescriptor:
    return _send_file(
        "sendDocument", "document", chat_id, document, caption, parse_mode,
        reply_to_message_id, reply_markup,
        {"disable_content_type_detection": disable_content_type_detection},
    )


def send_voice(
    chat_id: ChatId,
    voice: InputFile,
    caption: Optional[str] = None,
    parse_mode: Optional[str] = None,
    duration: Optional[int] = None,
    reply_to_message_id: Optional[int] = None,
    reply_markup: Optional[Union[InlineKeyboardMarkup, Mapping[str, Any]]] = None,
) -> MethodDescriptor:
    return _send_file(
        "sendVoice", "voice", chat_id, voice, caption, parse_mode,
        reply_to_message_id, reply_markup, {"duration": duration},
    )


def send_media_group(
    chat_id: ChatId,
    media: Sequence[Mapping[str, Any]],
    disable_notification: Optional[bool] = None,
    reply_to_message_id: Optional[int] = None,
) -> MethodDescriptor:
    """Send an album.

    Each item is an ``InputMedia`` mapping such as
    ``{"type": "photo", "media": InputFile.from_path("a.jpg")}``; uploads
    nested in ``media`` are attached as separate multipart parts.
    """
    return MethodDescriptor.build(
        "sendMediaGroup",
        {
            "chat_id": chat_id,
            "media": [dict(item) for item in media],
            "disable_notification": disable_notification,
            "reply_to_message_id": reply_to_message_id,
        },
        List[Message],
    )


def copy_message(chat_id: ChatId, from_chat_id: ChatId, message_id: int) -> MethodDescriptor:
    return MethodDescriptor.build(
        "copyMessage",
        {"chat_id": chat_id, "from_chat_id": from_chat_id, "message_id": message_id},
        MessageId,
    )


def answer_callback_query(
    callback_query_id: str,
    text: Optional[str] = None,
    show_alert: Optional[bool] = None,
    url: Optional[str] = None,
    cache_time: Optional[int] = None,
) -> MethodDescriptor:
    return MethodDescriptor.build(
        "answerCallbackQuery",
        {
            "callback_query_id": callback_query_id,
            "text": text,
            "show_alert": show_alert,
            "url": url,
            "cache_time": cache_time,
        },
        bool,
        idempotent=True,
    )


# ── Files ────────────────────────────────────────────────────────────────────


def get_file(file_id: str) -> MethodDescriptor:
    return MethodDescriptor.build("getFile", {"file_id": file_id}, File, idempotent=True)
