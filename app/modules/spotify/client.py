"""Spotify accounts service + Web API client (httpx, one AsyncClient per call)."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from app.infra.config import settings

logger = logging.getLogger("jukebox.spotify")

SCOPES = ("user-read-email", "user-read-private")


class SpotifyError(Exception):
    """Non-2xx response (or transport failure) from Spotify."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class TokenGrant:
    access_token: str
    expires_in: int
    refresh_token: str | None = None


class SpotifyClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        accounts_url: str = "https://accounts.spotify.com",
        api_url: str = "https://api.spotify.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.accounts_url = accounts_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _basic_auth(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode()
        return "Basic " + base64.b64encode(raw).decode()

    # --- Accounts service ---

    def authorize_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(SCOPES),
            "state": state,
        }
        return f"{self.accounts_url}/authorize?{urlencode(params)}"

    async def _token_request(self, form: dict[str, str], what: str) -> TokenGrant:
        try:
            async with self._http() as client:
                resp = await client.post(
                    f"{self.accounts_url}/api/token",
                    data=form,
                    headers={"Authorization": self._basic_auth()},
                )
        except httpx.HTTPError as e:
            raise SpotifyError(f"Spotify {what} failed: {e}") from e

        if resp.is_error:
            raise SpotifyError(
                f"Spotify {what} failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        data = resp.json()
        return TokenGrant(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in", 3600)),
            refresh_token=data.get("refresh_token") or None,
        )

    async def exchange_code(self, code: str) -> TokenGrant:
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
            "token exchange",
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        return await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            "token refresh",
        )

    async def request_app_token(self) -> TokenGrant:
        return await self._token_request(
            {"grant_type": "client_credentials"}, "client token"
        )

    # --- Web API ---

    async def get_json(
        self, access_token: str, path: str, params: dict | None = None
    ) -> dict:
        try:
            async with self._http() as client:
                resp = await client.get(
                    f"{self.api_url}{path}",
                    params=params,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            raise SpotifyError(f"Spotify API request failed: {e}") from e

        if resp.is_error:
            raise SpotifyError(
                f"Spotify API request failed: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def get_profile(self, access_token: str) -> dict:
        return await self.get_json(access_token, "/me")

    async def search_albums(self, access_token: str, query: str, limit: int) -> dict:
        return await self.get_json(
            access_token,
            "/search",
            params={"q": query, "type": "album", "limit": str(limit)},
        )

    async def get_album(self, access_token: str, album_id: str) -> dict:
        return await self.get_json(access_token, f"/albums/{album_id}")

    async def get_albums(self, access_token: str, album_ids: list[str]) -> dict:
        return await self.get_json(
            access_token, "/albums", params={"ids": ",".join(album_ids)}
        )


def get_spotify_client() -> SpotifyClient:
    """Factory: build a client from settings."""
    return SpotifyClient(
        client_id=settings.spotify_client_id,
        client_secret=settings.spotify_client_secret,
        redirect_uri=settings.spotify_redirect_uri,
        accounts_url=settings.spotify_accounts_url,
        api_url=settings.spotify_api_url,
        timeout=settings.spotify_timeout_seconds,
    )


# Module-level singleton, initialized lazily
_client: SpotifyClient | None = None


def get_spotify() -> SpotifyClient:
    """FastAPI dependency returning the shared Spotify client."""
    global _client
    if _client is None:
        _client = get_spotify_client()
    return _client
