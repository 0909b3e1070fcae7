"""Update dispatcher.

Consumes an :class:`~tgbot.source.UpdateSource` and routes each update to
the handlers registered in its :class:`~tgbot.registry.HandlerRegistry`.
Updates are dispatched one at a time in delivery order.  The source does
not fetch or confirm anything further until the current update has been
dispatched, so a crash mid-handler leaves it to be delivered again.

A handler failure is logged and confined to its update, so one bad
handler never stops the bot.
"""

from __future__ import annotations

import contextlib
import enum
import inspect
from typing import Callable, Optional, Union

from tgcore.logger import RelayLogger
from tgbot.command import Command
from tgbot.context import Context
from tgbot.registry import Handler, HandlerEntry, HandlerRegistry, HandlerResult
from tgbot.source import UpdateSource
from tgsdk.client import BotClient
from tgsdk.exceptions import BotError
from tgsdk.models import Update, UpdateKind

logger = RelayLogger.get_logger()


class DispatchOutcome(enum.Enum):
    HANDLED = "handled"          # a handler claimed the update
    NOT_HANDLED = "not_handled"  # no handler, or every handler passed
    FAILED = "failed"            # a handler raised


class Dispatcher:
    """Routes updates to handlers.

    Args:
        client: Passed to handlers through their :class:`Context`.
        registry: Handler store; a fresh one is created when omitted.
        bot_username: Commands whose ``@suffix`` names another bot are
            ignored.  Learned via :meth:`identify` when not given.
    """

    def __init__(
        self,
        client: BotClient,
        registry: Optional[HandlerRegistry] = None,
        bot_username: Optional[str] = None,
    ) -> None:
        self.client = client
        self.registry = registry if registry is not None else HandlerRegistry()
        self.bot_username = bot_username
        self._source: Optional[UpdateSource] = None

    # ── registration (delegates to the registry) ─────────────────────────

    def register(self, key: Union[UpdateKind, str], handler: Handler, *, description: Optional[str] = None) -> HandlerEntry:
        return self.registry.register(key, handler, description=description)

    def on(self, kind: Union[UpdateKind, str]) -> Callable[[Handler], Handler]:
        return self.registry.on(kind)

    def command(self, name: str, *, description: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.registry.command(name, description=description)

    # ── bot identity / command menu ──────────────────────────────────────

    async def identify(self) -> Optional[str]:
        """Fetch the bot's username with ``getMe`` and remember it."""
        me = await self.client.get_me()
        self.bot_username = me.username
        logger.info("Bot identified", extra={"bot_username": me.username, "bot_id": me.id})
        return self.bot_username

    async def publish_commands(self) -> bool:
        """Send the described commands to ``setMyCommands``.  No-op without any."""
        commands = self.registry.bot_commands()
        if not commands:
            return False
        await self.client.set_my_commands(commands)
        logger.info("Command menu published", extra={"count": len(commands)})
        return True

    # ── dispatch ─────────────────────────────────────────────────────────

    def _command_for(self, update: Update) -> Optional[Command]:
        command = Command.from_update(update)
        if command is not None and not command.is_addressed_to(self.bot_username):
            logger.debug(
                "Command addressed to another bot",
                extra={"update_id": update.update_id, "command": command.name, "bot_suffix": command.bot_suffix},
            )
            return None
        return command

    async def dispatch(self, update: Update) -> DispatchOutcome:
        """Invoke the matching handlers for *update* in registration order."""
        command = self._command_for(update)
        context = Context(client=self.client, update=update, command=command)

        for entry in self.registry.match(update, command):
            try:
                result = entry.handler(update, context)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                logger.exception(
                    "Handler failed",
                    extra={"update_id": update.update_id, "handler": entry.name, "update_kind": update.kind.value},
                )
                return DispatchOutcome.FAILED

            if result is HandlerResult.NOT_HANDLED:
                continue
            logger.debug("Update handled", extra={"update_id": update.update_id, "handler": entry.name})
            return DispatchOutcome.HANDLED

        logger.debug(
            "No handler claimed update",
            extra={"update_id": update.update_id, "update_kind": update.kind.value},
        )
        return DispatchOutcome.NOT_HANDLED

    # ── lifecycle ────────────────────────────────────────────────────────

    async def run(self, source: UpdateSource) -> None:
        """Dispatch everything *source* delivers until it stops.

        Raises:
            RuntimeError: If a source is already running on this dispatcher.
        """
        if self._source is not None:
            raise RuntimeError("dispatcher is already running a source")
        self._source = source
        try:
            async with contextlib.aclosing(source.stream()) as updates:
                async for update in updates:
                    await self.dispatch(update)
        finally:
            self._source = None

    def stop(self) -> None:
        """Stop the running source; the handler in progress is allowed to finish."""
        if self._source is not None:
            self._source.stop()

    async def start(self, source: UpdateSource, *, publish_commands: bool = False) -> None:
        """Identify the bot, optionally publish commands, then :meth:`run`.

        Startup calls that fail are logged and skipped; polling still starts.
        """
        if self.bot_username is None:
            try:
                await self.identify()
            except BotError as exc:
                logger.warning("getMe failed, @suffix filtering disabled", extra={"error": str(exc)})
        if publish_commands:
            try:
                await self.publish_commands()
            except BotError as exc:
                logger.warning("setMyCommands failed", extra={"error": str(exc)})
        await self.run(source)
