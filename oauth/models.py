"""Records persisted by the credential store and returned by /token.

Timestamps are integer Unix seconds.
"""

from pydantic import BaseModel


class PendingAuthorization(BaseModel):
    """OAuth parameters remembered between /authorize and the Google callback."""

    client_id: str
    redirect_uri: str
    code_challenge: str
    expires_at: int


class AuthorizationCode(BaseModel):
    """One-time code handed to the client, bound to its PKCE challenge."""

    client_id: str
    user_id: str
    code_challenge: str
    expires_at: int


class UpstreamCredentials(BaseModel):
    """Google tokens for a verified user, keyed by email."""

    refresh_token: str | None = None
    access_token: str
    expires_at: int


class RegisteredClient(BaseModel):
    """Dynamically registered OAuth client."""

    client_secret: str
    redirect_uris: list[str]


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
