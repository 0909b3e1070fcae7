"""HTTP transport: one POST per call over a shared ``httpx.AsyncClient``.

The transport knows nothing about envelopes.  It returns the status code
and raw body of whatever the server answered and turns every ``httpx``
failure that produced no response into
:class:`~tgsdk.exceptions.TransportError`.  Requests run on the event
loop, so cancelling the awaiting task aborts the request at once.
"""

from __future__ import annotations

from typing import Optional, Protocol, Tuple, Union

import httpx

from tgcore.logger import RelayLogger
from tgsdk.exceptions import TransportError
from tgsdk.multipart import JsonBody, MultipartBody

logger = RelayLogger.get_logger()

Body = Union[JsonBody, MultipartBody]


class Transport(Protocol):
    """Anything that can deliver a prepared body and return the raw answer."""

    async def post(self, method: str, body: Body, timeout: float) -> Tuple[int, bytes]: ...  # noqa: E704

    async def download(self, file_path: str, timeout: float) -> bytes: ...  # noqa: E704

    async def close(self) -> None: ...  # noqa: E704


class HttpTransport:
    """``httpx``-backed transport bound to ``https://<host>/bot<token>``.

    Args:
        token: Bot token, part of every URL.
        api_host: Scheme and host of the Bot API server.
        client: Pre-built ``httpx.AsyncClient``; one is created when omitted.
        proxy: Proxy URL (``http://``, ``https://`` or ``socks5://``) for
            the client created here.  Ignored when *client* is given.
    """

    def __init__(
        self,
        token: str,
        api_host: str = "https://api.telegram.org",
        client: Optional[httpx.AsyncClient] = None,
        proxy: Optional[str] = None,
    ) -> None:
        self._api_host = api_host.rstrip("/")
        self._token = token
        self._client = client if client is not None else httpx.AsyncClient(proxy=proxy)

    @property
    def base_url(self) -> str:
        return f"{self._api_host}/bot{self._token}"

    def _url(self, method: str) -> str:
        return f"{self.base_url}/{method}"

    def _redact(self, exc: Exception) -> str:
        """Error text with the token masked; httpx echoes URLs in messages."""
        text = str(exc) or type(exc).__name__
        return text.replace(self._token, "<token>") if self._token else text

    async def post(self, method: str, body: Body, timeout: float) -> Tuple[int, bytes]:
        """Send *body* to *method* and return ``(status_code, content)``.

        Non-2xx responses are returned, not raised: the platform puts its
        error envelope in the body.

        Raises:
            TransportError: On connection errors, timeouts and DNS failures.
        """
        headers = {"Content-Type": body.content_type, "Content-Length": str(len(body))}
        try:
            response = await self._client.post(self._url(method), content=body.data, headers=headers, timeout=timeout)
        except httpx.HTTPError as exc:
            reason = self._redact(exc)
            logger.debug("Transport failure", extra={"api_method": method, "error": reason})
            raise TransportError(method, reason) from exc
        return response.status_code, response.content

    async def download(self, file_path: str, timeout: float) -> bytes:
        """Fetch raw file bytes from ``/file/bot<token>/<file_path>``.

        Raises:
            TransportError: On transport failures and non-2xx answers.
        """
        url = f"{self._api_host}/file/bot{self._token}/{file_path.lstrip('/')}"
        try:
            response = await self._client.get(url, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError("download", self._redact(exc)) from exc
        return response.content

    async def close(self) -> None:
        await self._client.aclose()
