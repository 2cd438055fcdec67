import base64
from urllib.parse import parse_qs
import httpx
import pytest
from movetogether.services.provider_tokens import (
    BasicAuthRefresher, PostBodyRefresher, refresh_provider_token,
)

def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))

@pytest.mark.asyncio
async def test_basic_auth_refresher_sends_credentials_in_header():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["authorization"]
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "new-at", "refresh_token": "new-rt", "expires_in": 3600})

    async with _client(handler) as client:
        result = await BasicAuthRefresher("fitbit", "https://example.test/token", "cid", "secret", client).refresh("rt")

    assert result.success and result.access_token == "new-at" and result.refresh_token == "new-rt"
    assert result.expires_at is not None
    assert seen["auth"] == "Basic " + base64.b64encode(b"cid:secret").decode()
    assert seen["form"]["grant_type"] == ["refresh_token"]
    assert "client_secret" not in seen["form"]

@pytest.mark.asyncio
async def test_post_body_refresher_sends_credentials_in_form():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("authorization")
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"access_token": "at"})

    async with _client(handler) as client:
        result = await PostBodyRefresher("whoop", "https://example.test/token", "cid", "secret", client).refresh("rt")

    assert result.success and result.refresh_token is None and result.expires_at is None
    assert seen["auth"] is None
    assert seen["form"]["client_secret"] == ["secret"]

@pytest.mark.asyncio
@pytest.mark.parametrize("status,reconnect", [(400, True), (401, True), (403, True), (500, False)])
async def test_provider_rejection(status, reconnect):
    async with _client(lambda request: httpx.Response(status, text="nope")) as client:
        result = await BasicAuthRefresher("oura", "https://example.test/token", "c", "s", client).refresh("rt")
    assert result.success is False
    assert result.requires_reconnect is reconnect

@pytest.mark.asyncio
async def test_unknown_provider_and_missing_token_require_reconnect():
    result = await refresh_provider_token("myspace", "rt")
    assert not result.success and result.requires_reconnect
    result = await refresh_provider_token("fitbit", "")
    assert not result.success and result.requires_reconnect

@pytest.mark.asyncio
async def test_registry_lookup_uses_given_refreshers():
    def handler(request):
        return httpx.Response(200, json={"access_token": "at"})

    async with _client(handler) as client:
        refreshers = {"strava": BasicAuthRefresher("strava", "https://example.test/token", "c", "s", client)}
        result = await refresh_provider_token("strava", "rt", refreshers=refreshers)
    assert result.success
