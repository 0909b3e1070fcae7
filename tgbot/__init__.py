"""Update engine — sources, handler registry and dispatcher.

Usage::

    from tgbot import Dispatcher, LongPoller
    from tgsdk import BotClient

    client = BotClient.from_token(token)
    dispatcher = Dispatcher(client)

    @dispatcher.command("start", description="Say hello")
    async def start(update, context):
        await context.reply("Hello!")

    await dispatcher.start(LongPoller(client))
"""

from tgbot.command import Command
from tgbot.context import Context
from tgbot.dispatcher import DispatchOutcome, Dispatcher
from tgbot.polling import LongPoller, PollerState, PollerStatus
from tgbot.registry import HandlerEntry, HandlerRegistry, HandlerResult
from tgbot.source import UpdateSource
from tgbot.webhook import AllOf, IpAllowList, SecretTokenAuth, WebhookListener

__all__ = [
    "Command",
    "Context",
    "Dispatcher",
    "DispatchOutcome",
    "HandlerEntry",
    "HandlerRegistry",
    "HandlerResult",
    "UpdateSource",
    # Sources
    "LongPoller",
    "PollerState",
    "PollerStatus",
    "WebhookListener",
    # Webhook auth
    "SecretTokenAuth",
    "IpAllowList",
    "AllOf",
]
