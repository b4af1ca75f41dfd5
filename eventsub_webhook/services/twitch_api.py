"""Twitch API client service.

Low-level access to the two Twitch hosts the EventSub client talks to:

- OAuth (id.twitch.tv): app access token issuance and validation.
- Helix (api.twitch.tv): authenticated requests with an app access token.
"""

import logging
from typing import Any

import httpx

from eventsub_webhook.errors import InternalError, UnhandledStatusError

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


class TwitchAPIClient:
    """Client for the Twitch OAuth and Helix endpoints.

    Manages a shared httpx client for connection reuse. Pass *http_client*
    to supply your own (it will not be closed by :meth:`close`).
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        helix_url: str = HELIX_BASE,
        oauth_url: str = OAUTH_BASE,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.helix_url = helix_url.rstrip("/")
        self.oauth_url = oauth_url.rstrip("/")

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _app_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    # ------------------------------------------------------------------
    # App access token
    # ------------------------------------------------------------------

    async def generate_app_token(self) -> str:
        """Request a new app access token (client credentials grant)."""
        try:
            response = await self._http.post(
                f"{self.oauth_url}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as e:
            raise InternalError("Could not request app access token", e) from e

        if response.status_code != 200:
            logger.error(f"Failed to get app token: {response.status_code}")
            raise UnhandledStatusError(response.status_code, response.content)

        try:
            access_token = response.json().get("access_token")
        except ValueError as e:
            raise InternalError("Could not parse token response", e) from e

        if not access_token:
            raise InternalError("No access_token in token response")
        return str(access_token)

    async def validate_token(self, access_token: str) -> bool:
        """Validate an access token. Returns False when Twitch rejects it."""
        try:
            response = await self._http.get(
                f"{self.oauth_url}/validate",
                headers={"Authorization": f"OAuth {access_token}"},
            )
        except httpx.HTTPError as e:
            raise InternalError("Could not validate app access token", e) from e

        if response.status_code == 200:
            return True
        if response.status_code == 401:
            return False
        raise UnhandledStatusError(response.status_code, response.content)

    # ------------------------------------------------------------------
    # Helix
    # ------------------------------------------------------------------

    async def helix_request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send an authenticated request to Helix."""
        try:
            return await self._http.request(
                method,
                f"{self.helix_url}/{path.lstrip('/')}",
                params=params,
                json=json,
                headers=self._app_headers(token),
            )
        except httpx.HTTPError as e:
            raise InternalError(f"Could not send Helix {method} /{path}", e) from e
