"""Shared fixtures for the OAuth server tests."""

from urllib.parse import parse_qs, urlencode, urlparse

import pytest
from fastapi.testclient import TestClient

from app import create_app
from config import Config
from oauth.google import UpstreamTokens
from oauth.jwt_utils import TokenIssuer
from oauth.pkce import derive_challenge
from oauth.stores import CredentialStore, MemoryBackend

JWT_SECRET = "test-jwt-secret-that-is-long-enough"
ALLOWED_EMAIL = "alice@example.com"
CLIENT_REDIRECT_URI = "https://client.example/callback"
CODE_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk-verifier"


class FakeIdentityProvider:
    """Stands in for Google: every code maps to ``email``."""

    def __init__(self, email: str = ALLOWED_EMAIL):
        self.email = email
        self.fail_with = None
        self.exchanged_codes = []

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.example/auth?{urlencode({'state': state})}"

    async def exchange_code(self, code: str, now: int) -> UpstreamTokens:
        self.exchanged_codes.append(code)
        if self.fail_with:
            raise self.fail_with
        return UpstreamTokens(
            access_token="google-access",
            refresh_token="google-refresh",
            id_token="google-id-token",
            expires_at=now + 3600,
        )

    async def verified_email(self, tokens: UpstreamTokens) -> str:
        return self.email


@pytest.fixture
def config():
    return Config({
        "GOOGLE_CLIENT_ID": "test-client-id",
        "GOOGLE_CLIENT_SECRET": "test-client-secret",
        "JWT_SECRET": JWT_SECRET,
        "ALLOWED_EMAIL": ALLOWED_EMAIL,
        "BASE_URL": "http://localhost:8080",
    })


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return CredentialStore(backend)


@pytest.fixture
def token_issuer():
    return TokenIssuer(JWT_SECRET)


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def client(config, store, token_issuer, identity_provider):
    app = create_app(config, store, token_issuer, identity_provider)
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


def query_params(url: str) -> dict:
    """Single-valued query parameters of ``url``."""
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


def start_authorization(client, state: str = "state123", verifier: str = CODE_VERIFIER):
    return client.get("/authorize", params={
        "client_id": "client1",
        "redirect_uri": CLIENT_REDIRECT_URI,
        "state": state,
        "code_challenge": derive_challenge(verifier),
        "code_challenge_method": "S256",
    })


def obtain_code(client, state: str = "state123", verifier: str = CODE_VERIFIER) -> str:
    """Run /authorize and the Google callback, returning the issued code."""
    start_authorization(client, state, verifier)
    response = client.get("/oauth/google/callback", params={"code": "google-code", "state": state})
    assert response.status_code == 302
    return query_params(response.headers["location"])["code"]
