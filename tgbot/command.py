"""Slash-command parsing.

``/start@mybot "hello world" 42`` parses into name ``start``, bot suffix
``mybot`` and arguments ``("hello world", "42")``.  Arguments follow shell
quoting rules, so quoted text containing spaces stays one token.
"""

from __future__ import annotations

import dataclasses
import shlex
from typing import Optional

from tgsdk.models import Message, Update, UpdateKind

COMMAND_MARKER = "/"

# Kinds whose text is inspected for commands.
COMMAND_KINDS = frozenset({UpdateKind.MESSAGE, UpdateKind.CHANNEL_POST})


def tokenize(text: str) -> tuple[str, ...]:
    """Split *text* like a POSIX shell; unbalanced quotes fall back to whitespace."""
    lexer = shlex.shlex(text, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        return tuple(lexer)
    except ValueError:
        return tuple(text.split())


@dataclasses.dataclass(frozen=True)
class Command:
    """Parsed view of a message whose text starts with ``/``."""

    name: str
    bot_suffix: Optional[str] = None
    args: tuple[str, ...] = ()
    raw_args: str = ""

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional[Command]:
        """Return the command in *text*, or ``None`` if it is not a command."""
        if not text or not text.startswith(COMMAND_MARKER):
            return None

        # Any whitespace ends the command word: space, tab or newline.
        parts = text.split(None, 1)
        head = parts[0]
        rest = parts[1] if len(parts) > 1 else ""

        word = head[len(COMMAND_MARKER):]
        name, _, suffix = word.partition("@")
        if not name:
            return None

        rest = rest.strip()
        return cls(
            name=name.lower(),
            bot_suffix=suffix or None,
            args=tokenize(rest) if rest else (),
            raw_args=rest,
        )

    @classmethod
    def from_message(cls, message: Optional[Message]) -> Optional[Command]:
        if message is None:
            return None
        return cls.parse(message.text)

    @classmethod
    def from_update(cls, update: Update) -> Optional[Command]:
        """Parse the command carried by *update*, for command-capable kinds only."""
        if update.kind not in COMMAND_KINDS:
            return None
        return cls.from_message(update.message_like)

    def is_addressed_to(self, bot_username: Optional[str]) -> bool:
        """False when the command names a different bot via ``@suffix``."""
        if self.bot_suffix is None or bot_username is None:
            return True
        return self.bot_suffix.lower() == bot_username.lstrip("@").lower()
