"""Tests for the webhook listener and its request validators."""

import asyncio
import sys
import os

import httpx
import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tgcore.config import Settings
from tgbot.webhook import SECRET_HEADER, AllOf, IpAllowList, SecretTokenAuth, WebhookListener


SECRET = "s3cr3t-token"


def payload(update_id: int = 1, text: str = "hi") -> dict:
    return {
        "update_id": update_id,
        "message": {"message_id": update_id, "date": 0, "chat": {"id": 3, "type": "private"}, "text": text},
    }


def listener_with(auth, **kwargs) -> WebhookListener:
    listener = WebhookListener(auth, path="/hook", **kwargs)
    listener.open()
    return listener


def post(listener: WebhookListener, body=None, secret: str = SECRET, headers: dict | None = None, raw: bytes | None = None):
    client = TestClient(listener.app)
    all_headers = {SECRET_HEADER: secret} if secret else {}
    all_headers.update(headers or {})
    if raw is not None:
        return client.post("/hook", content=raw, headers={**all_headers, "Content-Type": "application/json"})
    return client.post("/hook", json=body if body is not None else payload(), headers=all_headers)


# ── Authentication ───────────────────────────────────────────────────────────


class TestAuth:
    """Unauthenticated requests never reach the queue."""

    def test_missing_secret_is_forbidden(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        response = post(listener, secret="")
        assert response.status_code == 403
        assert listener.pending_count == 0

    def test_wrong_secret_is_forbidden(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        assert post(listener, secret="guess").status_code == 403

    def test_valid_secret_accepted(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        response = post(listener)
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert listener.pending_count == 1

    def test_auth_is_mandatory(self) -> None:
        with pytest.raises(ValueError):
            WebhookListener(None)

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            SecretTokenAuth("")

    def test_ip_allow_list(self) -> None:
        listener = listener_with(IpAllowList(trust_forwarded=True))
        assert post(listener, secret="", headers={"X-Forwarded-For": "149.154.167.99, 10.0.0.1"}).status_code == 200
        assert post(listener, secret="", headers={"X-Forwarded-For": "8.8.8.8"}).status_code == 403

    def test_ip_allow_list_ignores_forwarded_by_default(self) -> None:
        listener = listener_with(IpAllowList())
        # The test client's peer address is not an IP in the published ranges.
        assert post(listener, secret="", headers={"X-Forwarded-For": "149.154.167.99"}).status_code == 403

    def test_all_of_requires_every_validator(self) -> None:
        auth = AllOf(SecretTokenAuth(SECRET), IpAllowList(["10.0.0.0/8"], trust_forwarded=True))
        listener = listener_with(auth)
        assert post(listener, headers={"X-Forwarded-For": "10.1.2.3"}).status_code == 200
        assert post(listener, secret="nope", headers={"X-Forwarded-For": "10.1.2.3"}).status_code == 403
        assert post(listener, headers={"X-Forwarded-For": "192.168.0.1"}).status_code == 403


# ── Body handling ────────────────────────────────────────────────────────────


class TestBody:
    """Bad bodies, duplicates and back-pressure."""

    def test_invalid_json(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        assert post(listener, raw=b"{not json").status_code == 400

    def test_not_an_update(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        assert post(listener, body={"message": {"text": "no update_id"}}).status_code == 400
        assert post(listener, body=[1, 2]).status_code == 400

    def test_duplicate_is_acknowledged_and_dropped(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        assert post(listener, payload(5)).json() == {"status": "ok"}

        response = post(listener, payload(5))

        assert response.status_code == 200
        assert response.json() == {"status": "duplicate"}
        assert listener.pending_count == 1

    def test_not_running_is_unavailable(self) -> None:
        listener = WebhookListener(SecretTokenAuth(SECRET), path="/hook")
        assert post(listener).status_code == 503

    def test_full_backlog_is_unavailable_then_retry_succeeds(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET), max_pending=1)
        assert post(listener, payload(1)).status_code == 200
        assert post(listener, payload(2)).status_code == 503

        listener._pending.get_nowait()
        assert post(listener, payload(2)).status_code == 200

    def test_unknown_kind_accepted(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        assert post(listener, {"update_id": 9, "purchased_paid_media": {"x": 1}}).status_code == 200
        assert listener._pending.get_nowait().raw == {"purchased_paid_media": {"x": 1}}

    def test_other_paths_not_served(self) -> None:
        listener = listener_with(SecretTokenAuth(SECRET))
        response = TestClient(listener.app).post("/elsewhere", json=payload(), headers={SECRET_HEADER: SECRET})
        assert response.status_code == 404


# ── Source lifecycle ─────────────────────────────────────────────────────────


class TestRun:
    """run() forwards accepted updates in order and drains on stop."""

    @pytest.mark.asyncio
    async def test_accepted_updates_reach_sink(self) -> None:
        listener = WebhookListener(SecretTokenAuth(SECRET), path="/hook")
        received: list = []

        async def fake_serve() -> None:
            from tgsdk.models import Update

            for update_id in (1, 2, 3):
                listener._pending.put_nowait(Update.model_validate(payload(update_id)))
            await listener._stop_event.wait()

        async def sink(update) -> None:
            received.append(update.update_id)
            if update.update_id == 3:
                listener.stop()

        listener.serve = fake_serve
        await asyncio.wait_for(listener.run(sink), timeout=2)

        assert received == [1, 2, 3]
        assert listener.pending_count == 0

    @pytest.mark.asyncio
    async def test_sink_error_propagates(self) -> None:
        listener = WebhookListener(SecretTokenAuth(SECRET), path="/hook")

        async def fake_serve() -> None:
            from tgsdk.models import Update

            listener._pending.put_nowait(Update.model_validate(payload(1)))
            await listener._stop_event.wait()

        async def sink(update) -> None:
            listener.stop()
            raise RuntimeError("sink broke")

        listener.serve = fake_serve
        with pytest.raises(RuntimeError):
            await asyncio.wait_for(listener.run(sink), timeout=2)


    @pytest.mark.asyncio
    async def test_sink_failure_stops_listener(self) -> None:
        listener = WebhookListener(SecretTokenAuth(SECRET), path="/hook")
        statuses: list = []

        async def fake_serve() -> None:
            transport = httpx.ASGITransport(app=listener.app)
            async with httpx.AsyncClient(transport=transport, base_url="http://relay") as client:
                first = await client.post("/hook", json=payload(1), headers={SECRET_HEADER: SECRET})
                statuses.append(first.status_code)
                for _ in range(50):
                    if not listener._accepting:
                        break
                    await asyncio.sleep(0)
                second = await client.post("/hook", json=payload(2), headers={SECRET_HEADER: SECRET})
                statuses.append(second.status_code)
            await listener._stop_event.wait()

        async def sink(update) -> None:
            raise RuntimeError("sink broke")

        listener.serve = fake_serve
        with pytest.raises(RuntimeError, match="sink broke"):
            await asyncio.wait_for(listener.run(sink), timeout=2)

        assert statuses == [200, 503]
        assert listener.stopped


class TestFromSettings:
    """Auth is derived from the configured secret and IP ranges."""

    def test_requires_some_auth(self) -> None:
        with pytest.raises(ValueError):
            WebhookListener.from_settings(Settings(token="t"))

    def test_secret_only(self) -> None:
        listener = WebhookListener.from_settings(Settings(token="t", webhook_secret=SECRET, webhook_path="hook", webhook_port=9000))
        assert isinstance(listener._auth, SecretTokenAuth)
        assert listener.path == "/hook"
        assert listener.port == 9000

    def test_secret_and_ips(self) -> None:
        settings = Settings(token="t", webhook_secret=SECRET, webhook_allowed_ips=("149.154.160.0/20",))
        assert isinstance(WebhookListener.from_settings(settings)._auth, AllOf)
