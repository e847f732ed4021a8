"""OAuth 2.1 authorization-code flow with PKCE.

The flow is a three-step redirect dance keyed by the client's ``state``:

1. /authorize stores a pending authorization and sends the user to Google.
2. The Google callback verifies the user, checks the allow-list and hands
   the client a one-time authorization code.
3. /token redeems the code (proving possession of the PKCE verifier) or a
   refresh token for a signed access/refresh token pair.

AuthorizationFlow keeps no state between requests; everything lives in the
credential store or inside the signed tokens.
"""

import logging
import secrets
import time
from typing import Callable, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from oauth.errors import (
    AuthorizationDeniedError,
    InvalidToken,
    OAuthError,
    StateError,
    UpstreamError,
    ValidationError,
)
from oauth.google import GoogleIdentityProvider
from oauth.jwt_utils import REFRESH, TokenIssuer
from oauth.models import RegisteredClient, TokenResponse, UpstreamCredentials
from oauth.pkce import SUPPORTED_METHODS, verify_challenge
from oauth.stores import CredentialStore

logger = logging.getLogger(__name__)

TOKEN_PARAMS = ("grant_type", "code", "code_verifier", "client_id", "refresh_token")


def allow_only(email: str) -> Callable[[str], bool]:
    """Single-tenant policy: only ``email`` (exact match) may sign in."""

    def is_allowed(identity: str) -> bool:
        return identity == email

    return is_allowed


def append_query(url: str, params: dict) -> str:
    """Add ``params`` to the query string of ``url``, keeping existing ones."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in params]
    query.extend(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


class AuthorizationFlow:
    """Orchestrates authorize, callback, token exchange and registration."""

    def __init__(
        self,
        store: CredentialStore,
        token_issuer: TokenIssuer,
        identity_provider: GoogleIdentityProvider,
        is_allowed: Callable[[str], bool],
    ):
        self.store = store
        self.token_issuer = token_issuer
        self.identity_provider = identity_provider
        self.is_allowed = is_allowed

    # ============== Authorization ==============

    async def authorize(
        self,
        client_id: Optional[str],
        redirect_uri: Optional[str],
        state: Optional[str],
        code_challenge: Optional[str],
        code_challenge_method: Optional[str],
    ) -> str:
        """Store the pending authorization and return the Google consent URL."""
        if not client_id or not redirect_uri or not state or not code_challenge:
            raise ValidationError("Missing required parameters")

        if code_challenge_method not in SUPPORTED_METHODS:
            raise ValidationError("Only S256 code challenge method is supported")

        now = int(time.time())
        await self.store.set_pending_auth(
            state,
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            now=now,
        )
        logger.info(f"[AUTHORIZE] Pending authorization stored for client {client_id}")

        return self.identity_provider.authorization_url(state)

    async def callback(
        self, code: Optional[str], state: Optional[str], error: Optional[str] = None
    ) -> str:
        """Finish the upstream login and return the client redirect URL."""
        if error:
            raise ValidationError(f"Google OAuth error: {error}")

        if not code or not state:
            raise ValidationError("Missing code or state")

        now = int(time.time())
        pending = await self.store.get_pending_auth(state, now)
        if not pending:
            raise StateError("Invalid or expired state")

        try:
            tokens = await self.identity_provider.exchange_code(code, now)
            email = await self.identity_provider.verified_email(tokens)
        except OAuthError as e:
            logger.error(f"[CALLBACK] Upstream exchange failed: {e.message}")
            raise UpstreamError("OAuth flow failed") from e
        except Exception as e:
            logger.exception(f"[CALLBACK] Unexpected upstream error: {e}")
            raise UpstreamError("OAuth flow failed") from e

        if not self.is_allowed(email):
            logger.warning(f"[CALLBACK] Access denied for {email}")
            raise AuthorizationDeniedError("User not authorized")

        await self.store.set_upstream_credentials(
            email,
            UpstreamCredentials(
                refresh_token=tokens.refresh_token,
                access_token=tokens.access_token,
                expires_at=tokens.expires_at,
            ),
        )

        auth_code = secrets.token_urlsafe(32)
        await self.store.set_auth_code(
            auth_code,
            client_id=pending.client_id,
            user_id=email,
            code_challenge=pending.code_challenge,
            now=now,
        )
        await self.store.delete_pending_auth(state)
        logger.info(f"[CALLBACK] Authorization code issued to client {pending.client_id} for {email}")

        return append_query(pending.redirect_uri, {"code": auth_code, "state": state})

    # ============== Token Endpoint ==============

    async def exchange_token(self, params: Mapping[str, Optional[str]]) -> TokenResponse:
        """Dispatch on ``grant_type``."""
        for name in TOKEN_PARAMS:
            value = params.get(name)
            if value is not None and not isinstance(value, str):
                raise ValidationError("Invalid request body")

        grant_type = params.get("grant_type")
        logger.debug(f"[TOKEN] grant_type: {grant_type}, client_id: {params.get('client_id')}")

        if grant_type == "authorization_code":
            return await self._redeem_code(
                params.get("code"), params.get("code_verifier"), params.get("client_id")
            )
        if grant_type == "refresh_token":
            return self._refresh(params.get("refresh_token"))

        raise ValidationError("Unsupported grant type")

    async def _redeem_code(
        self, code: Optional[str], code_verifier: Optional[str], client_id: Optional[str]
    ) -> TokenResponse:
        if not code or not code_verifier or not client_id:
            raise ValidationError("Missing required parameters")

        # client_id is required but not compared with auth_code.client_id;
        # the code is bound to its client by the PKCE verifier only.
        auth_code = await self.store.get_auth_code(code)
        if not auth_code:
            raise StateError("Invalid or expired code")

        # The code stays redeemable until a matching verifier shows up
        if not verify_challenge(auth_code.code_challenge, code_verifier):
            raise ValidationError("Invalid code verifier")

        tokens = self.token_issuer.issue_token_pair(auth_code.user_id)
        await self.store.delete_auth_code(code)
        logger.info(f"[TOKEN] Tokens issued for {auth_code.user_id} via authorization_code")
        return tokens

    def _refresh(self, refresh_token: Optional[str]) -> TokenResponse:
        if not refresh_token:
            raise ValidationError("Missing refresh token")

        try:
            claims = self.token_issuer.verify(refresh_token)
        except InvalidToken as e:
            raise InvalidToken("Invalid refresh token", status_code=400) from e

        if claims.get("type") != REFRESH:
            raise InvalidToken("Invalid token type", status_code=400)

        # The presented refresh token is not revoked; it stays valid until exp
        tokens = self.token_issuer.issue_token_pair(claims["sub"])
        logger.info(f"[TOKEN] Tokens issued for {claims['sub']} via refresh_token")
        return tokens

    # ============== Client Registration ==============

    async def register_client(self, redirect_uris) -> dict:
        """Dynamic client registration. Open to anyone, as MCP clients expect."""
        if not isinstance(redirect_uris, list) or not all(isinstance(uri, str) for uri in redirect_uris):
            raise ValidationError("redirect_uris required")

        client_id = secrets.token_urlsafe(24)
        client_secret = secrets.token_urlsafe(32)
        await self.store.set_client(
            client_id, RegisteredClient(client_secret=client_secret, redirect_uris=redirect_uris)
        )
        logger.info(f"[REGISTER] Registered client {client_id} with {len(redirect_uris)} redirect URI(s)")

        return {
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uris": redirect_uris,
        }
