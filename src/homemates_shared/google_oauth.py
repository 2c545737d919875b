"""Google OAuth 2.0 client for Gmail and Calendar integrations.

Builds consent URLs, exchanges authorization codes and revokes tokens.
https://developers.google.com/identity/protocols/oauth2/web-server
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import httpx

from homemates_shared.errors import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger("google-oauth")

PROVIDER = "Google"

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

TOOL_SCOPES: dict[str, list[str]] = {
    "gmail": [
        "https://www.googleapis.com/auth/gmail.send",
        "https://www.googleapis.com/auth/gmail.readonly",
    ],
    "calendar": [
        "https://www.googleapis.com/auth/calendar.events",
    ],
}


@dataclass
class GoogleOAuthConfig:
    """OAuth client credentials from the Google Cloud console."""

    client_id: str
    client_secret: str
    redirect_uri: str

    @classmethod
    def from_env(cls) -> "GoogleOAuthConfig":
        """Load Google OAuth config from environment variables."""
        client_id = os.getenv("GOOGLE_CLIENT_ID", "")
        client_secret = os.getenv("GOOGLE_CLIENT_SECRET", "")
        if not client_id or not client_secret:
            logger.warning("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set - tool connections will fail")

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=os.getenv(
                "GOOGLE_REDIRECT_URI", "http://localhost:3000/tools/callback"
            ),
        )

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class OAuthTokens:
    """Tokens returned by Google's token endpoint."""

    access_token: str
    refresh_token: str | None
    expires_at: datetime | None
    scopes: list[str]


class GoogleOAuthClient:
    """Performs the server side of Google's web OAuth flow."""

    def __init__(
        self,
        config: GoogleOAuthConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or GoogleOAuthConfig.from_env()
        self._transport = transport

    def _require_config(self) -> None:
        if not self.config.is_configured():
            raise ProviderNotConfiguredError(
                PROVIDER, ["GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET"]
            )

    def build_auth_url(self, tool_type: str, state: str) -> str:
        """Build the consent screen URL for a tool.

        Args:
            tool_type: "gmail" or "calendar".
            state: Opaque value echoed back to the callback.
        """
        self._require_config()
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(TOOL_SCOPES[tool_type]),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for access and refresh tokens."""
        self._require_config()
        payload = {
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_uri,
            "grant_type": "authorization_code",
        }

        async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
            try:
                response = await client.post(TOKEN_URL, data=payload)
            except httpx.RequestError as e:
                logger.error(f"Google token exchange failed: {e!s}")
                raise ProviderError(PROVIDER, f"Request failed: {e!s}") from e

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}

        if response.is_error:
            message = (
                data.get("error_description")
                or data.get("error")
                or f"Token exchange failed ({response.reason_phrase})"
            )
            logger.error(f"Google token exchange returned {response.status_code}: {message}")
            raise ProviderError(PROVIDER, message, status_code=response.status_code)

        if not data.get("access_token"):
            logger.error("Google token response had no access token")
            raise ProviderError(PROVIDER, "Token response missing access_token")

        expires_in = data.get("expires_in")
        return OAuthTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            if expires_in
            else None,
            scopes=(data.get("scope") or "").split(),
        )

    async def revoke(self, token: str) -> bool:
        """Revoke a token. Returns False instead of raising on failure."""
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(REVOKE_URL, data={"token": token})
        except httpx.RequestError as e:
            logger.warning(f"Google token revoke failed: {e!s}")
            return False

        if response.is_error:
            logger.warning(f"Google token revoke returned {response.status_code}")
            return False
        return True


_google_oauth_client: GoogleOAuthClient | None = None


def get_google_oauth_client() -> GoogleOAuthClient:
    """Get the Google OAuth client singleton."""
    global _google_oauth_client
    if _google_oauth_client is None:
        _google_oauth_client = GoogleOAuthClient()
    return _google_oauth_client
