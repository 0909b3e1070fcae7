"""Bot API SDK — typed call descriptors, the call engine, and its errors.

Usage::

    from tgsdk import BotClient, InputFile, methods

    client = BotClient.from_token(token)
    me = await client.get_me()
    await client.execute(methods.send_document(chat_id, InputFile.from_path("report.pdf")))
"""

from tgsdk import methods
from tgsdk.client import BotClient
from tgsdk.exceptions import ApiError, BotError, ProtocolError, TransportError, TypeMismatchError
from tgsdk.files import InputFile
from tgsdk.methods import MethodDescriptor
from tgsdk.models import BotCommand, BotCommandScope, Update, UpdateKind
from tgsdk.retry import RetryPolicy, execute_with_retry

__all__ = [
    "methods",
    "BotClient",
    "MethodDescriptor",
    "InputFile",
    "BotCommand",
    "BotCommandScope",
    "Update",
    "UpdateKind",
    "RetryPolicy",
    "execute_with_retry",
    # Errors
    "BotError",
    "TransportError",
    "ProtocolError",
    "ApiError",
    "TypeMismatchError",
]
