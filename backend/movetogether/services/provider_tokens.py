from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

import httpx
import structlog

from movetogether.config import Settings, settings
from movetogether.services.clock import utcnow

log = structlog.get_logger()

FITBIT_TOKEN_URL = "https://api.fitbit.com/oauth2/token"
WHOOP_TOKEN_URL = "https://api.prod.whoop.com/oauth/oauth2/token"
OURA_TOKEN_URL = "https://api.ouraring.com/oauth/token"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"
GARMIN_TOKEN_URL = "https://connectapi.garmin.com/oauth-service/oauth/token"

# Provider says the refresh token is invalid or revoked
RECONNECT_STATUSES = (400, 401, 403)


@dataclass
class TokenResult:
    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: datetime | None = None
    error: str | None = None
    requires_reconnect: bool = False


class TokenRefresher(Protocol):
    provider: str

    async def refresh(self, refresh_token: str) -> TokenResult: ...


class _OAuthRefresher:
    def __init__(
        self, provider: str, token_url: str, client_id: str, client_secret: str,
        client: httpx.AsyncClient | None = None, timeout: float = 10.0,
    ):
        self.provider = provider
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self._client = client
        self._timeout = timeout

    def _request_kwargs(self, refresh_token: str) -> dict:
        raise NotImplementedError

    async def refresh(self, refresh_token: str) -> TokenResult:
        if not refresh_token:
            return TokenResult(success=False, error="No refresh token available", requires_reconnect=True)

        kwargs = self._request_kwargs(refresh_token)
        try:
            if self._client is not None:
                r = await self._client.post(self.token_url, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    r = await client.post(self.token_url, **kwargs)
        except httpx.HTTPError as e:
            log.error("provider_token_refresh_error", provider=self.provider, error=str(e))
            return TokenResult(success=False, error=str(e))

        if r.status_code >= 400:
            log.error("provider_token_refresh_failed", provider=self.provider, status=r.status_code, body=r.text[:500])
            return TokenResult(
                success=False,
                error=f"Token refresh failed: {r.status_code}",
                requires_reconnect=r.status_code in RECONNECT_STATUSES,
            )

        try:
            data = r.json()
        except ValueError:
            return TokenResult(success=False, error="Token endpoint returned invalid JSON")
        if not data.get("access_token"):
            return TokenResult(success=False, error="Token endpoint returned no access token")

        expires_in = data.get("expires_in")
        log.info("provider_token_refreshed", provider=self.provider)
        return TokenResult(
            success=True,
            access_token=data["access_token"],
            # Only some providers rotate the refresh token
            refresh_token=data.get("refresh_token") or None,
            expires_at=utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None,
        )


class BasicAuthRefresher(_OAuthRefresher):
    """Client secret in an HTTP Basic header (Fitbit, Oura, Strava, Garmin)."""

    def _request_kwargs(self, refresh_token: str) -> dict:
        return {
            "data": {"grant_type": "refresh_token", "refresh_token": refresh_token, "client_id": self.client_id},
            "auth": httpx.BasicAuth(self.client_id, self.client_secret),
        }


class PostBodyRefresher(_OAuthRefresher):
    """Client credentials in the form body (Whoop)."""

    def _request_kwargs(self, refresh_token: str) -> dict:
        return {
            "data": {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        }


def build_refreshers(cfg: Settings = settings, client: httpx.AsyncClient | None = None) -> dict[str, TokenRefresher]:
    return {
        "fitbit": BasicAuthRefresher("fitbit", FITBIT_TOKEN_URL, cfg.fitbit_client_id, cfg.fitbit_client_secret, client),
        "whoop": PostBodyRefresher("whoop", WHOOP_TOKEN_URL, cfg.whoop_client_id, cfg.whoop_client_secret, client),
        "oura": BasicAuthRefresher("oura", OURA_TOKEN_URL, cfg.oura_client_id, cfg.oura_client_secret, client),
        "strava": BasicAuthRefresher("strava", STRAVA_TOKEN_URL, cfg.strava_client_id, cfg.strava_client_secret, client),
        "garmin": BasicAuthRefresher("garmin", GARMIN_TOKEN_URL, cfg.garmin_client_id, cfg.garmin_client_secret, client),
    }


REFRESHERS: dict[str, TokenRefresher] = build_refreshers()


async def refresh_provider_token(
    provider: str, refresh_token: str, refreshers: dict[str, TokenRefresher] | None = None,
) -> TokenResult:
    refresher = (refreshers if refreshers is not None else REFRESHERS).get(provider)
    if refresher is None:
        return TokenResult(
            success=False, error=f"Token refresh not supported for provider: {provider}", requires_reconnect=True,
        )
    return await refresher.refresh(refresh_token)
