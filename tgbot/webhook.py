"""Webhook update source — a FastAPI endpoint served by uvicorn.

Every request is authenticated before its body is trusted.  Accepted
updates are queued and answered with 200 straight away; a forwarder task
feeds the queue to the sink, so handler run time never delays the HTTP
response (which would make the platform retry the delivery).

Responses:
    403  authentication failed
    400  body is not a JSON update
    503  listener not running, or too many updates pending
    200  accepted (or a duplicate of an update accepted earlier)
"""

from __future__ import annotations

import asyncio
import collections
import hmac
import ipaddress
import json
from typing import Any, Iterable, Optional, Protocol, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import ValidationError

from tgcore.config import DEFAULT_WEBHOOK_NETWORKS, Settings
from tgcore.logger import RelayLogger
from tgbot.source import Sink, UpdateSource
from tgsdk.models import Update

logger = RelayLogger.get_logger()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


# ── Authentication ───────────────────────────────────────────────────────────


class WebhookAuth(Protocol):
    """Decides whether a request really comes from the platform."""

    def __call__(self, request: Request) -> bool: ...  # noqa: E704


class SecretTokenAuth:
    """Constant-time check of the secret-token header set via ``setWebhook``."""

    def __init__(self, secret: str, header: str = SECRET_HEADER) -> None:
        if not secret:
            raise ValueError("secret token must not be empty")
        self._secret = secret.encode("utf-8")
        self.header = header

    def __call__(self, request: Request) -> bool:
        candidate = request.headers.get(self.header, "")
        return hmac.compare_digest(self._secret, candidate.encode("utf-8"))


class IpAllowList:
    """Accept requests whose client address lies in one of *networks*.

    With ``trust_forwarded`` the first ``X-Forwarded-For`` address is used,
    which is only safe behind a proxy that overwrites that header.
    """

    def __init__(self, networks: Iterable[str] = DEFAULT_WEBHOOK_NETWORKS, trust_forwarded: bool = False) -> None:
        self.networks = [ipaddress.ip_network(net, strict=False) for net in networks]
        if not self.networks:
            raise ValueError("IP allow-list must contain at least one network")
        self.trust_forwarded = trust_forwarded

    def _client_host(self, request: Request) -> Optional[str]:
        if self.trust_forwarded:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return request.client.host if request.client else None

    def __call__(self, request: Request) -> bool:
        host = self._client_host(request)
        if not host:
            return False
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return False
        return any(address in network for network in self.networks)


class AllOf:
    """Require every wrapped validator to accept the request."""

    def __init__(self, *validators: WebhookAuth) -> None:
        if not validators:
            raise ValueError("AllOf needs at least one validator")
        self.validators: Sequence[WebhookAuth] = validators

    def __call__(self, request: Request) -> bool:
        return all(validator(request) for validator in self.validators)


# ── Listener ─────────────────────────────────────────────────────────────────


class WebhookListener(UpdateSource):
    """Receives pushed updates on ``POST <path>``.

    Args:
        auth: Request validator; mandatory.
        path: Route path, ideally hard to guess.
        host: Interface to bind.
        port: Port to bind.
        max_pending: Accepted updates waiting for the sink before 503s.
        dedupe_window: How many recent ``update_id`` values to remember.
        ssl_certfile: Certificate for serving HTTPS directly.
        ssl_keyfile: Private key for ``ssl_certfile``.
    """

    def __init__(
        self,
        auth: WebhookAuth,
        path: str = "/webhook",
        host: str = "0.0.0.0",
        port: int = 8443,
        max_pending: int = 1000,
        dedupe_window: int = 1000,
        ssl_certfile: Optional[str] = None,
        ssl_keyfile: Optional[str] = None,
    ) -> None:
        super().__init__()
        if auth is None:
            raise ValueError("webhook listener requires an auth validator")
        self._auth = auth
        self.path = "/" + path.lstrip("/")
        self.host = host
        self.port = port
        self.max_pending = max_pending
        self.ssl_certfile = ssl_certfile
        self.ssl_keyfile = ssl_keyfile
        self._pending: Optional[asyncio.Queue] = None
        self._accepting = False
        self._recent_ids: collections.deque = collections.deque(maxlen=dedupe_window)
        self._recent_set: set[int] = set()
        self.app = self._build_app()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> WebhookListener:
        """Build a listener whose auth combines the configured secret and IP ranges.

        Raises:
            ValueError: If neither a secret nor an allow-list is configured.
        """
        validators: list[WebhookAuth] = []
        if settings.webhook_secret:
            validators.append(SecretTokenAuth(settings.webhook_secret))
        if settings.webhook_allowed_ips:
            validators.append(IpAllowList(settings.webhook_allowed_ips))
        if not validators:
            raise ValueError("webhook needs BOT_WEBHOOK_SECRET or BOT_WEBHOOK_ALLOWED_IPS")
        auth = validators[0] if len(validators) == 1 else AllOf(*validators)
        return cls(
            auth,
            path=settings.webhook_path,
            host=settings.webhook_host,
            port=settings.webhook_port,
            **kwargs,
        )

    # ------------------------------------------------------------------
    #  HTTP side
    # ------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
        app.add_api_route(self.path, self._receive, methods=["POST"])
        return app

    async def _receive(self, request: Request) -> dict:
        if not self._auth(request):
            logger.warning("Webhook request rejected", extra={"client": request.client.host if request.client else None})
            raise HTTPException(status_code=403, detail="Forbidden")

        raw_body = await request.body()
        try:
            update = Update.model_validate(json.loads(raw_body))
        except (ValueError, ValidationError) as exc:
            logger.warning("Webhook payload is not an update", extra={"error": str(exc)[:200]})
            raise HTTPException(status_code=400, detail="Invalid update")

        if self._pending is None or not self._accepting:
            raise HTTPException(status_code=503, detail="Listener not running")
        if update.update_id in self._recent_set:
            logger.debug("Duplicate webhook delivery", extra={"update_id": update.update_id})
            return {"status": "duplicate"}
        try:
            self._pending.put_nowait(update)
        except asyncio.QueueFull:
            logger.warning("Webhook backlog full", extra={"update_id": update.update_id, "max_pending": self.max_pending})
            raise HTTPException(status_code=503, detail="Busy")

        self._remember(update.update_id)
        return {"status": "ok"}

    def _remember(self, update_id: int) -> None:
        if len(self._recent_ids) == self._recent_ids.maxlen:
            self._recent_set.discard(self._recent_ids[0])
        self._recent_ids.append(update_id)
        self._recent_set.add(update_id)

    # ------------------------------------------------------------------
    #  Source side
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Start accepting updates into the pending queue."""
        if self._pending is None:
            self._pending = asyncio.Queue(maxsize=self.max_pending)
        self._accepting = True

    @property
    def pending_count(self) -> int:
        return self._pending.qsize() if self._pending is not None else 0

    async def _forward(self, sink: Sink) -> None:
        assert self._pending is not None
        while True:
            update = await self._pending.get()
            try:
                await sink(update)
            except Exception:
                # Nothing drains the queue any more; let the platform retry elsewhere.
                self._accepting = False
                raise
            finally:
                self._pending.task_done()

    def _server(self) -> uvicorn.Server:
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            ssl_certfile=self.ssl_certfile,
            ssl_keyfile=self.ssl_keyfile,
        )
        return uvicorn.Server(config)

    async def serve(self) -> None:
        """Run the HTTP server until :meth:`stop` is called."""
        server = self._server()
        serving = asyncio.ensure_future(server.serve())
        stop = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({serving, stop}, return_when=asyncio.FIRST_COMPLETED)
            server.should_exit = True
            await serving
        finally:
            stop.cancel()

    async def run(self, sink: Sink) -> None:
        """Serve until stopped, then hand every accepted update to *sink*.

        If *sink* raises, the listener answers 503 from then on, shuts the
        server down and re-raises the sink's error.
        """
        self.open()
        assert self._pending is not None
        logger.info("Webhook listener started", extra={"host": self.host, "port": self.port, "path": self.path})
        forwarder = asyncio.ensure_future(self._forward(sink))
        serving = asyncio.ensure_future(self.serve())
        try:
            done, _ = await asyncio.wait({serving, forwarder}, return_when=asyncio.FIRST_COMPLETED)
            if forwarder in done:
                logger.error(
                    "Update sink failed, shutting down webhook listener",
                    extra={"dropped": self.pending_count, "path": self.path},
                )
                self.stop()
                await serving
                forwarder.result()
            else:
                serving.result()
                # Hand over everything accepted before shutdown.
                self._accepting = False
                drained = asyncio.ensure_future(self._pending.join())
                await asyncio.wait({drained, forwarder}, return_when=asyncio.FIRST_COMPLETED)
                drained.cancel()
                if forwarder.done():
                    forwarder.result()
        finally:
            self._accepting = False
            for task in (forwarder, serving):
                if not task.done():
                    task.cancel()
            self._pending = None
            logger.info("Webhook listener stopped")
