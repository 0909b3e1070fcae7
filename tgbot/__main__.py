"""Run an echo bot: ``python -m tgbot [--webhook] [--publish-commands]``.

Reads its configuration from the environment (and ``.env``) through
:meth:`tgcore.config.Settings.from_env`.  Replies to ``/start`` and
``/echo``, and echoes any other text message back.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
from typing import Optional, Sequence

from tgcore.config import Settings
from tgcore.logger import RelayLogger
from tgbot.context import Context
from tgbot.dispatcher import Dispatcher
from tgbot.polling import LongPoller
from tgbot.registry import HandlerResult
from tgbot.source import UpdateSource
from tgbot.webhook import WebhookListener
from tgsdk.client import BotClient
from tgsdk.models import Update, UpdateKind


def build_dispatcher(client: BotClient) -> Dispatcher:
    dispatcher = Dispatcher(client)

    @dispatcher.command("start", description="Say hello")
    async def start(update: Update, context: Context) -> None:
        await context.reply("Hello! Send me any text and I will echo it.")

    @dispatcher.command("echo", description="Repeat the given words")
    async def echo_command(update: Update, context: Context) -> None:
        await context.reply(context.command.raw_args or "Nothing to echo.")

    @dispatcher.on(UpdateKind.MESSAGE)
    async def echo_text(update: Update, context: Context) -> Optional[HandlerResult]:
        message = context.message
        if message is None or not message.text or context.command is not None:
            return HandlerResult.NOT_HANDLED
        await context.reply(message.text)
        return HandlerResult.HANDLED

    return dispatcher


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tgbot", description="Run the echo bot.")
    parser.add_argument("--webhook", action="store_true", help="receive updates through the webhook listener")
    parser.add_argument("--publish-commands", action="store_true", help="send the command menu on startup")
    parser.add_argument("--log-level", default=None, help="override BOT_LOG_LEVEL")
    return parser.parse_args(argv)


async def _serve(settings: Settings, use_webhook: bool, publish_commands: bool) -> None:
    client = BotClient.from_settings(settings)
    dispatcher = build_dispatcher(client)
    source: UpdateSource
    if use_webhook:
        source = WebhookListener.from_settings(settings)
    else:
        source = LongPoller.from_settings(client, settings)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, dispatcher.stop)
        except NotImplementedError:  # Windows
            pass

    try:
        await dispatcher.start(source, publish_commands=publish_commands)
    finally:
        await client.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    settings = Settings.from_env()
    if not settings.token:
        raise SystemExit("BOT_TOKEN environment variable is not set or is empty.")

    RelayLogger.configure(level=args.log_level or settings.log_level, log_dir=settings.log_dir)
    asyncio.run(_serve(settings, args.webhook, args.publish_commands))


if __name__ == "__main__":
    main()
