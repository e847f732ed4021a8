"""Google as the single upstream identity provider.

Builds the consent URL, exchanges the callback code for Google tokens and
resolves the verified email from the returned id token.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from oauth.errors import UpstreamError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

GOOGLE_SCOPES = "openid email profile"
DEFAULT_TOKEN_LIFETIME = 3600


@dataclass
class UpstreamTokens:
    access_token: str
    refresh_token: Optional[str]
    id_token: str
    expires_at: int


class GoogleIdentityProvider:
    """OAuth client for Google's authorization-code flow.

    Args:
        client_id: Google OAuth client ID
        client_secret: Google OAuth client secret
        redirect_uri: Our callback URL registered with Google
        transport: Optional httpx transport (tests pass an httpx.MockTransport)
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        transport: httpx.AsyncBaseTransport = None,
        timeout: float = 10.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def authorization_url(self, state: str) -> str:
        """Consent screen URL; Google echoes ``state`` back to the callback."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str, now: int) -> UpstreamTokens:
        """Exchange the callback code for Google tokens."""
        async with self._client() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri,
                    "grant_type": "authorization_code",
                },
            )

        if response.status_code != 200:
            logger.warning(f"[GOOGLE] Token exchange failed with status {response.status_code}")
            raise UpstreamError("Google token exchange failed")

        data = response.json()
        if not data.get("access_token") or not data.get("id_token"):
            raise UpstreamError("Google token response missing tokens")

        return UpstreamTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            id_token=data["id_token"],
            expires_at=now + int(data.get("expires_in", DEFAULT_TOKEN_LIFETIME)),
        )

    async def verified_email(self, tokens: UpstreamTokens) -> str:
        """Validate the id token with Google and return its verified email."""
        async with self._client() as client:
            response = await client.get(GOOGLE_TOKENINFO_URL, params={"id_token": tokens.id_token})

        if response.status_code != 200:
            logger.warning(f"[GOOGLE] tokeninfo rejected id token: {response.status_code}")
            raise UpstreamError("Google id token verification failed")

        info = response.json()
        if info.get("aud") != self.client_id:
            raise UpstreamError("Google id token audience mismatch")

        # tokeninfo reports booleans as strings
        if str(info.get("email_verified", "")).lower() != "true" or not info.get("email"):
            raise UpstreamError("Google account email is not verified")

        return info["email"]
