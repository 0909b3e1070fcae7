"""Handler registry — ordered mapping of update kinds and commands to handlers.

Design:
- ``Handler`` is a :class:`Protocol`: any callable taking
  ``(update, context)`` and returning a :class:`HandlerResult`, ``None``,
  or an awaitable of either.
- ``HandlerRegistry`` keeps one ordered list of ``HandlerEntry`` values, so
  kind handlers and command handlers interleave in registration order.
- ``@registry.on(kind)`` and ``@registry.command(name)`` bind a function
  in one place; ``register()`` is the plain-call equivalent.

A registry is an ordinary object owned by its dispatcher; there is no
module-level singleton.
"""

from __future__ import annotations

import dataclasses
import enum
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    Iterator,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from tgsdk.models import BotCommand, Update, UpdateKind

if TYPE_CHECKING:
    from tgbot.command import Command
    from tgbot.context import Context


class HandlerResult(enum.Enum):
    """What a handler tells the dispatcher.

    ``HANDLED`` (or returning ``None``) ends dispatch for the update;
    ``NOT_HANDLED`` passes it on to the next matching handler.  Raising an
    exception aborts dispatch for that update only.
    """

    HANDLED = "handled"
    NOT_HANDLED = "not_handled"


HandlerReturn = Optional[HandlerResult]


@runtime_checkable
class Handler(Protocol):
    """Callable invoked with the update and its dispatch context."""

    def __call__(self, update: Update, context: Context) -> Union[HandlerReturn, Awaitable[HandlerReturn]]: ...  # noqa: E704


# ── Registry entry ───────────────────────────────────────────────────────────

@dataclasses.dataclass(frozen=True, slots=True)
class HandlerEntry:
    """One registration: either an update kind or a command name."""

    handler: Handler
    kind: Optional[UpdateKind] = None
    command: Optional[str] = None      # without the leading "/"
    description: Optional[str] = None  # shown in the client's command menu

    @property
    def name(self) -> str:
        return getattr(self.handler, "__name__", repr(self.handler))

    def matches(self, update: Update, command: Optional[Command]) -> bool:
        if self.command is not None:
            return command is not None and command.name == self.command
        return self.kind is update.kind


def _normalize_command(name: str) -> str:
    return name.lstrip("/").lower()


def _as_kind(key: Union[UpdateKind, str]) -> Optional[UpdateKind]:
    if isinstance(key, UpdateKind):
        return key
    try:
        return UpdateKind(key)
    except ValueError:
        return None


# ── Registry ─────────────────────────────────────────────────────────────────

class HandlerRegistry:
    """Ordered handler store.

    Usage::

        registry = HandlerRegistry()

        @registry.command("start", description="Say hello")
        async def start(update, context): ...

        @registry.on(UpdateKind.CALLBACK_QUERY)
        async def buttons(update, context): ...
    """

    def __init__(self) -> None:
        self._entries: list[HandlerEntry] = []

    def register(
        self,
        key: Union[UpdateKind, str],
        handler: Handler,
        *,
        description: Optional[str] = None,
    ) -> HandlerEntry:
        """Register *handler* for an update kind or a command name.

        *key* is an :class:`UpdateKind`, a kind name such as
        ``"callback_query"``, or a command name (``"start"`` or ``"/start"``).
        Strings starting with ``/`` are always treated as commands.
        """
        kind = None if isinstance(key, str) and key.startswith("/") else _as_kind(key)
        if kind is not None:
            entry = HandlerEntry(handler=handler, kind=kind)
        else:
            entry = HandlerEntry(handler=handler, command=_normalize_command(str(key)), description=description)
        self._entries.append(entry)
        return entry

    # ── decorators ───────────────────────────────────────────────────────

    def on(self, kind: Union[UpdateKind, str]) -> Callable[[Handler], Handler]:
        """Decorator registering a handler for every update of *kind*."""
        resolved = _as_kind(kind)
        if resolved is None:
            raise ValueError(f"unknown update kind: {kind!r}")

        def decorator(func: Handler) -> Handler:
            self.register(resolved, func)
            return func
        return decorator

    def command(self, name: str, *, description: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator registering a handler for ``/name``."""
        def decorator(func: Handler) -> Handler:
            self.register(f"/{_normalize_command(name)}", func, description=description)
            return func
        return decorator

    # ── lookup helpers ───────────────────────────────────────────────────

    def match(self, update: Update, command: Optional[Command] = None) -> Iterator[HandlerEntry]:
        """Entries that apply to *update*, in registration order."""
        for entry in list(self._entries):
            if entry.matches(update, command):
                yield entry

    def entries(self) -> list[HandlerEntry]:
        return list(self._entries)

    def commands(self) -> list[str]:
        """Registered command names, first registration order, no duplicates."""
        return list(dict.fromkeys(e.command for e in self._entries if e.command is not None))

    def bot_commands(self) -> list[BotCommand]:
        """Described commands as :class:`BotCommand` values for ``setMyCommands``."""
        seen: dict[str, BotCommand] = {}
        for entry in self._entries:
            if entry.command and entry.description and entry.command not in seen:
                seen[entry.command] = BotCommand(command=entry.command, description=entry.description)
        return list(seen.values())

    def __len__(self) -> int:
        return len(self._entries)

