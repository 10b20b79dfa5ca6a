import json

import httpx
import pytest
from fastapi import status

from councilhub.configuration import services as settings_service
from councilhub.configuration.crypto import DecryptionError, decrypt, encrypt
from councilhub.integrations.endpoints import get_http_client
from councilhub.integrations.gmail import SEND_URL, TOKEN_URL
from councilhub.integrations.recaptcha import VERIFY_URL
from councilhub.utils import ValidationFailed
from tests.conftest import auth_headers


def _use_transport(app, handler) -> list:
    """Route integration HTTP calls to ``handler`` and record the requests."""
    seen = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    app.dependency_overrides[get_http_client] = lambda: client
    return seen


def test_encrypt_round_trip_and_tamper():
    token = encrypt("refresh-token-value")
    assert token.count(":") == 2
    assert token != encrypt("refresh-token-value")
    assert decrypt(token) == "refresh-token-value"

    iv, tag, ciphertext = token.split(":")
    with pytest.raises(DecryptionError):
        decrypt(f"{iv}:{tag}:{ciphertext[:-4]}AAAA")
    with pytest.raises(DecryptionError):
        decrypt("not-encrypted")


def test_site_config_coerces_stored_strings():
    config = settings_service.parse_site_config(
        {"recaptcha_enabled": "true", "recaptcha_threshold": "0.7", "tagline": "", "extra": "x"}
    )
    assert config.recaptcha_enabled is True
    assert config.recaptcha_threshold == 0.7
    assert config.tagline is None
    with pytest.raises(ValidationFailed):
        settings_service.parse_site_config({"recaptcha_threshold": "high"})


@pytest.mark.anyio
async def test_public_settings_hide_secrets(client, dbsession, admin):
    await settings_service.upsert_many(
        dbsession, {"site_name": "Lakeside Council", "gcs_private_key": encrypt("k")}
    )
    response = await client.get("/api/settings")
    assert response.json()["data"] == {"site_name": "Lakeside Council"}

    response = await client.post(
        "/api/settings",
        json={"values": {"recaptcha_secret_key": "abc"}},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = await client.post(
        "/api/settings",
        json={"values": {"tagline": "Play together", "recaptcha_enabled": False}},
        headers=auth_headers(admin),
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()["data"]
    assert data["tagline"] == "Play together"
    assert data["recaptcha_enabled"] == "false"
    assert "gcs_private_key" not in data


@pytest.mark.anyio
async def test_settings_update_requires_admin(client, editor):
    response = await client.post(
        "/api/settings", json={"values": {"tagline": "x"}}, headers=auth_headers(editor)
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.anyio
async def test_gmail_configure_test_disconnect(client, fastapi_app, dbsession, super_admin):
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, json={"access_token": "ya29.token"})
        if str(request.url) == SEND_URL:
            return httpx.Response(200, json={"id": "gmail-1"})
        return httpx.Response(404)

    seen = _use_transport(fastapi_app, handler)
    headers = auth_headers(super_admin)

    response = await client.post(
        "/api/integrations/gmail/configure",
        json={
            "client_id": "client",
            "client_secret": "secret",
            "refresh_token": "refresh",
            "connected_email": "office@council.example",
        },
        headers=headers,
    )
    assert response.json()["data"]["is_connected"] is True
    stored = await settings_service.get_value(dbsession, "gmail_client_secret")
    assert stored != "secret"
    assert decrypt(stored) == "secret"

    response = await client.post(
        "/api/integrations/gmail/test", json={"to": "me@example.com"}, headers=headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["data"]["message_id"] == "gmail-1"
    assert json.loads(seen[-1].content)["raw"]

    response = await client.post("/api/integrations/gmail/disconnect", headers=headers)
    assert response.json()["data"]["is_connected"] is False
    assert await settings_service.get_value(dbsession, "gmail_client_id") is None


@pytest.mark.anyio
async def test_gmail_test_failure_is_bad_gateway(client, fastapi_app, super_admin):
    _use_transport(fastapi_app, lambda request: httpx.Response(400, text="invalid_grant"))
    headers = auth_headers(super_admin)
    await client.post(
        "/api/integrations/gmail/configure",
        json={
            "client_id": "client",
            "client_secret": "secret",
            "refresh_token": "revoked",
            "connected_email": "office@council.example",
        },
        headers=headers,
    )
    response = await client.post(
        "/api/integrations/gmail/test", json={"to": "me@example.com"}, headers=headers
    )
    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    assert "invalid_grant" in response.json()["error"]


@pytest.mark.anyio
async def test_integrations_require_super_admin(client, admin):
    response = await client.get("/api/integrations/gmail/status", headers=auth_headers(admin))
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.anyio
async def test_gcs_bad_key_is_not_kept(client, fastapi_app, super_admin):
    _use_transport(fastapi_app, lambda request: httpx.Response(500))
    headers = auth_headers(super_admin)
    response = await client.post(
        "/api/integrations/gcs/configure",
        json={
            "project_id": "council",
            "client_email": "svc@council.iam.gserviceaccount.com",
            "private_key": "not a pem key",
            "bucket_name": "council-media",
        },
        headers=headers,
    )
    assert response.status_code == status.HTTP_502_BAD_GATEWAY
    response = await client.get("/api/integrations/gcs/status", headers=headers)
    assert response.json()["data"]["is_connected"] is False


@pytest.mark.anyio
async def test_recaptcha_guards_registration(client, fastapi_app, super_admin):
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == VERIFY_URL
        return httpx.Response(200, json={"success": True, "score": 0.1})

    _use_transport(fastapi_app, handler)
    response = await client.post(
        "/api/integrations/recaptcha/configure",
        json={"site_key": "site", "secret_key": "secret", "threshold": 0.5},
        headers=auth_headers(super_admin),
    )
    assert response.json()["data"]["enabled"] is True

    response = await client.post(
        "/api/auth/register",
        json={
            "name": "Bot Account",
            "email": "bot@example.com",
            "password": "Password123",
            "recaptcha_token": "client-token",
        },
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "reCAPTCHA score too low"

    response = await client.post(
        "/api/auth/register",
        json={"name": "No Token", "email": "nt@example.com", "password": "Password123"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
