"""Per-update dispatch context handed to every handler."""

from __future__ import annotations

import dataclasses
from typing import Any, Optional

from tgbot.command import Command
from tgsdk.client import BotClient
from tgsdk.models import Message, Update


@dataclasses.dataclass(frozen=True)
class Context:
    """What a handler can see and do for one update.

    ``client`` is the outgoing-call capability; ``command`` is set when the
    update is a command addressed to this bot.
    """

    client: BotClient
    update: Update
    command: Optional[Command] = None

    @property
    def message(self) -> Optional[Message]:
        return self.update.message_like

    @property
    def chat_id(self) -> Optional[int]:
        if self.message is not None:
            return self.message.chat.id
        query = self.update.callback_query
        if query is not None and query.message is not None:
            return query.message.chat.id
        return None

    @property
    def args(self) -> tuple[str, ...]:
        return self.command.args if self.command else ()

    async def reply(self, text: str, **kwargs: Any) -> Message:
        """Send *text* to the chat the update came from.

        Raises:
            ValueError: If the update has no chat (inline queries, polls, …).
        """
        chat_id = self.chat_id
        if chat_id is None:
            raise ValueError(f"{self.update.kind.value} update has no chat to reply to")
        return await self.client.send_message(chat_id, text, **kwargs)
