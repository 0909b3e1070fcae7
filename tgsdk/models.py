"""Pydantic data models for the Bot API objects the engine touches.

Only the objects needed to route updates and to type the results of the
shipped method catalogue are modelled.  Unknown fields sent by newer
platform versions are ignored, except on :class:`Update`, which keeps them
so payloads of unrecognized kinds survive parsing.
"""

from __future__ import annotations

import enum
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class ResponseParameters(BaseModel):
    """Contains information about why a request was unsuccessful."""

    migrate_to_chat_id: Optional[int] = None
    retry_after: Optional[int] = None

    model_config = {"populate_by_name": True}


class User(BaseModel):
    """A user or bot."""

    id: int
    is_bot: bool
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    can_join_groups: Optional[bool] = None
    can_read_all_group_messages: Optional[bool] = None
    supports_inline_queries: Optional[bool] = None

    model_config = {"populate_by_name": True}


class Chat(BaseModel):
    """A private chat, group, supergroup or channel."""

    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class MessageEntity(BaseModel):
    """One special entity in a text message (command, mention, URL, …)."""

    type: str
    offset: int
    length: int
    url: Optional[str] = None
    user: Optional[User] = None
    language: Optional[str] = None

    model_config = {"populate_by_name": True}


class PhotoSize(BaseModel):
    """One size of a photo or a file thumbnail."""

    file_id: str
    file_unique_id: str
    width: int
    height: int
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Document(BaseModel):
    """A general file."""

    file_id: str
    file_unique_id: str
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Voice(BaseModel):
    """A voice note."""

    file_id: str
    file_unique_id: str
    duration: int
    mime_type: Optional[str] = None
    file_size: Optional[int] = None

    model_config = {"populate_by_name": True}


class Location(BaseModel):
    longitude: float
    latitude: float
    horizontal_accuracy: Optional[float] = None

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """A message.  Only routing-relevant and common content fields are typed."""

    message_id: int
    date: int
    chat: Chat
    from_field: Optional[User] = Field(None, alias="from")
    sender_chat: Optional[Chat] = None
    reply_to_message: Optional[Message] = None
    edit_date: Optional[int] = None
    media_group_id: Optional[str] = None
    text: Optional[str] = None
    entities: Optional[List[MessageEntity]] = None
    caption: Optional[str] = None
    caption_entities: Optional[List[MessageEntity]] = None
    document: Optional[Document] = None
    photo: Optional[List[PhotoSize]] = None
    voice: Optional[Voice] = None
    location: Optional[Location] = None
    migrate_to_chat_id: Optional[int] = None

    model_config = {"populate_by_name": True}


class MessageId(BaseModel):
    message_id: int

    model_config = {"populate_by_name": True}


class CallbackQuery(BaseModel):
    """A press on an inline keyboard button."""

    id: str
    from_field: User = Field(..., alias="from")
    chat_instance: str
    message: Optional[Message] = None
    inline_message_id: Optional[str] = None
    data: Optional[str] = None
    game_short_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class InlineQuery(BaseModel):
    id: str
    from_field: User = Field(..., alias="from")
    query: str
    offset: str
    location: Optional[Location] = None

    model_config = {"populate_by_name": True}


class ChosenInlineResult(BaseModel):
    result_id: str
    from_field: User = Field(..., alias="from")
    query: str
    location: Optional[Location] = None
    inline_message_id: Optional[str] = None

    model_config = {"populate_by_name": True}


class ShippingAddress(BaseModel):
    country_code: str
    state: str
    city: str
    street_line1: str
    street_line2: str
    post_code: str

    model_config = {"populate_by_name": True}


class OrderInfo(BaseModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    shipping_address: Optional[ShippingAddress] = None

    model_config = {"populate_by_name": True}


class ShippingQuery(BaseModel):
    id: str
    from_field: User = Field(..., alias="from")
    invoice_payload: str
    shipping_address: ShippingAddress

    model_config = {"populate_by_name": True}


class PreCheckoutQuery(BaseModel):
    id: str
    from_field: User = Field(..., alias="from")
    currency: str
    total_amount: int
    invoice_payload: str
    shipping_option_id: Optional[str] = None
    order_info: Optional[OrderInfo] = None

    model_config = {"populate_by_name": True}


class PollOption(BaseModel):
    text: str
    voter_count: int

    model_config = {"populate_by_name": True}


class Poll(BaseModel):
    id: str
    question: str
    options: List[PollOption]
    total_voter_count: int
    is_closed: bool
    is_anonymous: bool
    type: str
    allows_multiple_answers: bool

    model_config = {"populate_by_name": True}


class PollAnswer(BaseModel):
    poll_id: str
    user: Optional[User] = None
    option_ids: List[int]

    model_config = {"populate_by_name": True}


class ChatMemberUpdated(BaseModel):
    """A change of a chat member's status.  Member objects are kept raw."""

    chat: Chat
    from_field: User = Field(..., alias="from")
    date: int
    old_chat_member: Dict[str, Any]
    new_chat_member: Dict[str, Any]

    model_config = {"populate_by_name": True}


class UpdateKind(str, enum.Enum):
    """Closed set of update kinds plus an ``UNKNOWN`` fallback.

    Member values are the payload field names used on the wire, so they
    double as ``allowed_updates`` entries.
    """

    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    CALLBACK_QUERY = "callback_query"
    SHIPPING_QUERY = "shipping_query"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"
    POLL = "poll"
    POLL_ANSWER = "poll_answer"
    MY_CHAT_MEMBER = "my_chat_member"
    CHAT_MEMBER = "chat_member"
    UNKNOWN = "unknown"


class Update(BaseModel):
    """An incoming update.  At most one payload field is present.

    Payloads of kinds this library does not know are preserved in
    :attr:`raw` and reported as :attr:`UpdateKind.UNKNOWN`.
    """

    update_id: int
    message: Optional[Message] = None
    edited_message: Optional[Message] = None
    channel_post: Optional[Message] = None
    edited_channel_post: Optional[Message] = None
    inline_query: Optional[InlineQuery] = None
    chosen_inline_result: Optional[ChosenInlineResult] = None
    callback_query: Optional[CallbackQuery] = None
    shipping_query: Optional[ShippingQuery] = None
    pre_checkout_query: Optional[PreCheckoutQuery] = None
    poll: Optional[Poll] = None
    poll_answer: Optional[PollAnswer] = None
    my_chat_member: Optional[ChatMemberUpdated] = None
    chat_member: Optional[ChatMemberUpdated] = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    @property
    def kind(self) -> UpdateKind:
        for kind in UpdateKind:
            if kind is not UpdateKind.UNKNOWN and getattr(self, kind.value) is not None:
                return kind
        return UpdateKind.UNKNOWN

    @property
    def payload(self) -> Union[BaseModel, Dict[str, Any]]:
        """The typed payload, or the raw extra fields for unknown kinds."""
        kind = self.kind
        if kind is UpdateKind.UNKNOWN:
            return self.raw
        return getattr(self, kind.value)

    @property
    def raw(self) -> Dict[str, Any]:
        """Fields the model does not recognise, exactly as received."""
        return dict(self.model_extra or {})

    @property
    def message_like(self) -> Optional[Message]:
        """The message carried by message-shaped kinds, if any."""
        return self.message or self.edited_message or self.channel_post or self.edited_channel_post


class WebhookInfo(BaseModel):
    """Current status of a webhook."""

    url: str
    has_custom_certificate: bool
    pending_update_count: int
    ip_address: Optional[str] = None
    last_error_date: Optional[int] = None
    last_error_message: Optional[str] = None
    max_connections: Optional[int] = None
    allowed_updates: Optional[List[str]] = None

    model_config = {"populate_by_name": True}


class File(BaseModel):
    """A file ready to be downloaded from ``/file/bot<token>/<file_path>``."""

    file_id: str
    file_unique_id: str
    file_size: Optional[int] = None
    file_path: Optional[str] = None

    model_config = {"populate_by_name": True}


_COMMAND_NAME_RE = re.compile(r"^[a-z0-9_]{1,32}$")


class BotCommand(BaseModel):
    """A command shown in the client's command menu.

    ``command`` is 1-32 characters of lowercase letters, digits and
    underscores; ``description`` is 3-256 characters.
    """

    command: str
    description: str

    model_config = {"populate_by_name": True}

    @field_validator("command")
    @classmethod
    def _check_command(cls, value: str) -> str:
        value = value.lstrip("/")
        if not _COMMAND_NAME_RE.match(value):
            raise ValueError(
                "command name must be 1-32 characters of lowercase letters, digits and underscores, "
                f"got {value!r}"
            )
        return value

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        if not 3 <= len(value) <= 256:
            raise ValueError(f"command description must be 3-256 characters, got {len(value)}")
        return value


class BotCommandScopeType(str, enum.Enum):
    DEFAULT = "default"
    ALL_PRIVATE_CHATS = "all_private_chats"
    ALL_GROUP_CHATS = "all_group_chats"
    ALL_CHAT_ADMINISTRATORS = "all_chat_administrators"
    CHAT = "chat"
    CHAT_ADMINISTRATORS = "chat_administrators"
    CHAT_MEMBER = "chat_member"


_SCOPES_WITH_CHAT = {
    BotCommandScopeType.CHAT,
    BotCommandScopeType.CHAT_ADMINISTRATORS,
    BotCommandScopeType.CHAT_MEMBER,
}


class BotCommandScope(BaseModel):
    """Which users see a command menu.

    Serialized as ``{"type": ..., "chat_id": ..., "user_id": ...}``; the
    chat kinds need ``chat_id`` and ``chat_member`` also needs ``user_id``.
    Use the constructors rather than building one by hand::

        await client.set_my_commands(admin_commands, BotCommandScope.chat_administrators(-100123))
    """

    type: BotCommandScopeType = BotCommandScopeType.DEFAULT
    chat_id: Optional[Union[int, str]] = None
    user_id: Optional[int] = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def _check_targets(self) -> BotCommandScope:
        if self.type in _SCOPES_WITH_CHAT and self.chat_id is None:
            raise ValueError(f"scope {self.type.value!r} requires chat_id")
        if self.type is BotCommandScopeType.CHAT_MEMBER and self.user_id is None:
            raise ValueError("scope 'chat_member' requires user_id")
        if self.type not in _SCOPES_WITH_CHAT and (self.chat_id is not None or self.user_id is not None):
            raise ValueError(f"scope {self.type.value!r} takes no chat_id or user_id")
        return self

    @classmethod
    def default(cls) -> BotCommandScope:
        return cls(type=BotCommandScopeType.DEFAULT)

    @classmethod
    def all_private_chats(cls) -> BotCommandScope:
        return cls(type=BotCommandScopeType.ALL_PRIVATE_CHATS)

    @classmethod
    def all_group_chats(cls) -> BotCommandScope:
        return cls(type=BotCommandScopeType.ALL_GROUP_CHATS)

    @classmethod
    def all_chat_administrators(cls) -> BotCommandScope:
        return cls(type=BotCommandScopeType.ALL_CHAT_ADMINISTRATORS)

    @classmethod
    def chat(cls, chat_id: Union[int, str]) -> BotCommandScope:
        return cls(type=BotCommandScopeType.CHAT, chat_id=chat_id)

    @classmethod
    def chat_administrators(cls, chat_id: Union[int, str]) -> BotCommandScope:
        return cls(type=BotCommandScopeType.CHAT_ADMINISTRATORS, chat_id=chat_id)

    @classmethod
    def chat_member(cls, chat_id: Union[int, str], user_id: int) -> BotCommandScope:
        return cls(type=BotCommandScopeType.CHAT_MEMBER, chat_id=chat_id, user_id=user_id)


class InlineKeyboardButton(BaseModel):
    text: str
    url: Optional[str] = None
    callback_data: Optional[str] = None
    switch_inline_query: Optional[str] = None
    switch_inline_query_current_chat: Optional[str] = None

    model_config = {"populate_by_name": True}


class InlineKeyboardMarkup(BaseModel):
    inline_keyboard: List[List[InlineKeyboardButton]]

    model_config = {"populate_by_name": True}


Message.model_rebuild()
