# tests/test_webhook_api.py
import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from drive_relay.errors import StorageError
from drive_relay.main import create_app
from drive_relay.utils.security import compute_line_signature

from .conftest import TEST_USER


@pytest.fixture
async def api(context):
    app = create_app(context=context)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


def _signed(settings, payload) -> tuple:
    body = json.dumps(payload).encode("utf-8")
    return body, {"X-Line-Signature": compute_line_signature(settings.line_channel_secret, body),
                  "Content-Type": "application/json"}


async def test_healthz(api):
    response = await api.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_signed_delivery_is_dispatched(api, settings, remote):
    body, headers = _signed(settings, {"destination": "Ubot", "events": [{
        "type": "message",
        "replyToken": "reply-token",
        "source": {"type": "user", "userId": TEST_USER},
        "message": {"type": "text", "id": "1", "text": "ping"},
    }]})

    response = await api.post("/", content=body, headers=headers)

    assert response.status_code == 200, f"Expected 200, got {response.status_code}. Body: {response.text}"
    assert remote.reply_texts() == ["ping"]


async def test_bad_signature_is_rejected(api, settings, remote):
    body, _ = _signed(settings, {"events": []})
    response = await api.post("/", content=body, headers={"X-Line-Signature": "bm90LXRoZS1zaWduYXR1cmU="})
    assert response.status_code == 400
    assert remote.calls == []


async def test_missing_signature_is_rejected(api):
    response = await api.post("/", content=b'{"events": []}')
    assert response.status_code == 400


async def test_malformed_body_is_rejected(api, settings):
    body = b"not json"
    headers = {"X-Line-Signature": compute_line_signature(settings.line_channel_secret, body)}
    response = await api.post("/", content=body, headers=headers)
    assert response.status_code == 400


async def test_empty_verification_delivery_is_accepted(api, settings, remote):
    body, headers = _signed(settings, {"destination": "Ubot", "events": []})
    response = await api.post("/", content=body, headers=headers)
    assert response.status_code == 200
    assert remote.calls == []


async def _issue_nonce(context) -> str:
    url = await context.authorization_flow.begin_authorization(TEST_USER)
    return parse_qs(urlparse(url).query)["state"][0]


async def test_callback_success_then_replay(api, context, remote):
    nonce = await _issue_nonce(context)

    first = await api.get("/oauth/callback", params={"state": nonce, "code": "auth-code"})
    replay = await api.get("/oauth/callback", params={"state": nonce, "code": "auth-code"})

    assert first.status_code == 200
    assert "Successful" in first.text
    assert await context.credential_store.exists(TEST_USER)
    assert replay.status_code == 400
    assert remote.count("token") == 1


async def test_callback_with_forged_state(api, remote):
    response = await api.get("/oauth/callback", params={"state": "forged", "code": "auth-code"})
    assert response.status_code == 400
    assert remote.count("token") == 0


async def test_callback_exchange_failure_is_502(api, context, remote):
    nonce = await _issue_nonce(context)
    remote.token_status = 400
    response = await api.get("/oauth/callback", params={"state": nonce, "code": "bad"})
    assert response.status_code == 502
    assert not await context.credential_store.exists(TEST_USER)


async def test_callback_persistence_failure_is_500(api, context, monkeypatch):
    nonce = await _issue_nonce(context)

    async def broken_put(user_id, credential):
        raise StorageError("database is locked")

    monkeypatch.setattr(context.credential_store, "put", broken_put)
    response = await api.get("/oauth/callback", params={"state": nonce, "code": "auth-code"})
    assert response.status_code == 500


async def test_denied_consent_consumes_state(api, context, remote):
    nonce = await _issue_nonce(context)

    denied = await api.get("/oauth/callback", params={"state": nonce, "error": "access_denied"})
    retry = await api.get("/oauth/callback", params={"state": nonce, "code": "auth-code"})

    assert denied.status_code == 400
    assert retry.status_code == 400
    assert remote.count("token") == 0


async def test_requests_before_startup_are_503(settings):
    app = create_app(settings=settings)
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get("/oauth/callback", params={"state": "x", "code": "y"})
    assert response.status_code == 503
