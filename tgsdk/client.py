"""BotClient — the call engine.

``execute`` turns a :class:`~tgsdk.methods.MethodDescriptor` into one HTTP
request and returns the typed result:

1. body encoding (:mod:`tgsdk.multipart`, JSON or multipart),
2. one POST through the transport with a bounded timeout,
3. envelope decoding (:mod:`tgsdk.envelope`) and result validation.

The engine never sleeps and never retries.  A rate-limited call raises
:class:`~tgsdk.exceptions.ApiError` with ``retry_after`` set; replaying
is the caller's decision (see :mod:`tgsdk.retry`).  The transport is
async all the way down, so cancelling a caller aborts its request.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Union

from tgcore.config import Settings
from tgcore.logger import RelayLogger
from tgsdk import methods
from tgsdk.envelope import Failure, decode
from tgsdk.files import InputFile
from tgsdk.methods import ChatId, MethodDescriptor
from tgsdk.models import BotCommand, BotCommandScope, File, InlineKeyboardMarkup, Message, Update, User, WebhookInfo
from tgsdk.multipart import encode_body
from tgsdk.transport import HttpTransport, Transport

logger = RelayLogger.get_logger()


class BotClient:
    """Async client for the Bot API.

    Args:
        transport: Delivers prepared bodies; usually an :class:`HttpTransport`.
        timeout: Seconds allowed for an ordinary call.  Long-polling calls
            get their server-side wait added on top.
    """

    _DEFAULT_TIMEOUT: float = 10.0

    def __init__(self, transport: Transport, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self._transport = transport
        self._timeout = timeout

    @classmethod
    def from_token(
        cls,
        token: str,
        api_host: str = "https://api.telegram.org",
        timeout: float = _DEFAULT_TIMEOUT,
        proxy: Optional[str] = None,
    ) -> BotClient:
        return cls(HttpTransport(token, api_host, proxy=proxy), timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> BotClient:
        return cls.from_token(settings.token, settings.api_host, settings.timeout, proxy=settings.proxy)

    @property
    def timeout(self) -> float:
        return self._timeout

    def timeout_for(self, descriptor: MethodDescriptor) -> float:
        """Client-side timeout: the ordinary budget plus any server-side wait."""
        return self._timeout + max(descriptor.wait, 0)

    # ------------------------------------------------------------------
    #  Engine
    # ------------------------------------------------------------------

    async def execute(self, descriptor: MethodDescriptor) -> Any:
        """Run *descriptor* and return its result validated into ``result_type``.

        Raises:
            TransportError: The request produced no HTTP response.
            ProtocolError: The response is not a valid envelope.
            ApiError: The platform rejected the call; check ``retry_after``.
            TypeMismatchError: ``result`` does not fit ``result_type``.
        """
        body = encode_body(descriptor.params)
        timeout = self.timeout_for(descriptor)
        logger.debug(
            "Executing call",
            extra={"api_method": descriptor.name, "content_type": body.content_type.split(";")[0], "timeout": timeout},
        )

        status_code, raw = await self._transport.post(descriptor.name, body, timeout)
        envelope = decode(raw, status_code)

        if isinstance(envelope, Failure):
            error = envelope.to_error(descriptor.name)
            logger.warning(
                "API call rejected",
                extra={
                    "api_method": descriptor.name,
                    "error_code": error.error_code,
                    "description": error.description,
                    "retry_after": error.retry_after,
                },
            )
            raise error

        return envelope.parse(descriptor.result_type)

    async def call(self, name: str, params: Optional[Mapping[str, Any]] = None, result_type: Any = Any) -> Any:
        """Execute a method the catalogue does not cover."""
        return await self.execute(MethodDescriptor.build(name, params, result_type))

    async def download_file(self, file: Union[File, str]) -> bytes:
        """Download file content given a :class:`File` or its ``file_path``.

        Raises:
            ValueError: If the :class:`File` carries no ``file_path``.
            TransportError: On network failures or a non-2xx answer.
        """
        file_path = file.file_path if isinstance(file, File) else file
        if not file_path:
            raise ValueError("file has no file_path; call get_file first")
        return await self._transport.download(file_path, self._timeout * 3)

    async def close(self) -> None:
        await self._transport.close()

    # ------------------------------------------------------------------
    #  Convenience wrappers
    # ------------------------------------------------------------------

    async def get_me(self) -> User:
        return await self.execute(methods.get_me())

    async def get_updates(
        self,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        timeout: int = 0,
        allowed_updates: Optional[Sequence[str]] = None,
    ) -> List[Update]:
        return await self.execute(methods.get_updates(offset, limit, timeout, allowed_updates))

    async def set_webhook(self, url: str, **kwargs: Any) -> bool:
        return await self.execute(methods.set_webhook(url, **kwargs))

    async def delete_webhook(self, drop_pending_updates: Optional[bool] = None) -> bool:
        return await self.execute(methods.delete_webhook(drop_pending_updates))

    async def get_webhook_info(self) -> WebhookInfo:
        return await self.execute(methods.get_webhook_info())

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[Union[InlineKeyboardMarkup, Mapping[str, Any]]] = None,
        **kwargs: Any,
    ) -> Message:
        return await self.execute(
            methods.send_message(chat_id, text, parse_mode=parse_mode, reply_markup=reply_markup, **kwargs)
        )

    async def send_photo(self, chat_id: ChatId, photo: InputFile, **kwargs: Any) -> Message:
        return await self.execute(methods.send_photo(chat_id, photo, **kwargs))

    async def send_document(self, chat_id: ChatId, document: InputFile, **kwargs: Any) -> Message:
        return await self.execute(methods.send_document(chat_id, document, **kwargs))

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None, **kwargs: Any) -> bool:
        return await self.execute(methods.answer_callback_query(callback_query_id, text, **kwargs))

    async def get_file(self, file_id: str) -> File:
        return await self.execute(methods.get_file(file_id))

    async def set_my_commands(
        self,
        commands: Sequence[BotCommand],
        scope: Optional[BotCommandScope] = None,
        language_code: Optional[str] = None,
    ) -> bool:
        return await self.execute(methods.set_my_commands(commands, scope, language_code))

    async def get_my_commands(
        self, scope: Optional[BotCommandScope] = None, language_code: Optional[str] = None
    ) -> List[BotCommand]:
        return await self.execute(methods.get_my_commands(scope, language_code))

    async def delete_my_commands(
        self, scope: Optional[BotCommandScope] = None, language_code: Optional[str] = None
    ) -> bool:
        return await self.execute(methods.delete_my_commands(scope, language_code))
