"""OAuth refresh-token credential holder for the Google Drive transport.

Exchanges a long-lived refresh token for short-lived access tokens and
caches the current one until shortly before it expires.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from cashbook.errors import CredentialError, StoreUnavailableError

logger = logging.getLogger(__name__)

_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Refresh this many seconds before the reported expiry.
_EXPIRY_SKEW_SECS = 60


class GoogleOAuthCredentials:
    """Holds a refresh token and hands out valid access tokens.

    Constructor accepts explicit params; no env-var loading.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        token_url: str = _TOKEN_URL,
        timeout: float = 15.0,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._token_url = token_url
        self._client = httpx.AsyncClient(timeout=timeout)
        self._access_token: str | None = None
        self._expires_at: float = 0.0

    @property
    def valid(self) -> bool:
        """True while a cached access token is outside the refresh window."""
        return (
            self._access_token is not None
            and time.monotonic() < self._expires_at - _EXPIRY_SKEW_SECS
        )

    async def access_token(self) -> str:
        """Return a usable access token, refreshing when needed."""
        if self.valid and self._access_token:
            return self._access_token
        return await self.refresh()

    def invalidate(self) -> None:
        """Forget the cached access token (e.g. after a 401)."""
        self._access_token = None
        self._expires_at = 0.0

    async def refresh(self) -> str:
        """Exchange the refresh token for a fresh access token and return it."""
        try:
            resp = await self._client.post(
                self._token_url,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as exc:
            raise StoreUnavailableError(f"Token refresh failed: {exc}") from exc

        data = _json_or_empty(resp)
        if resp.status_code >= 400:
            if data.get("error") == "invalid_grant":
                raise CredentialError(
                    "Refresh token expired or revoked. "
                    "Run scripts/get_refresh_token.py to issue a new one.",
                    status_code=resp.status_code,
                )
            raise StoreUnavailableError(
                f"Token refresh failed: {resp.text}", status_code=resp.status_code
            )

        token = data.get("access_token")
        if not token:
            raise StoreUnavailableError("Token endpoint returned no access_token.")

        self._access_token = token
        self._expires_at = time.monotonic() + float(data.get("expires_in", 3600))
        logger.info("Google Drive access token refreshed.")
        return token

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


def _json_or_empty(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
