"""JWT utilities for OAuth access and refresh tokens.

Provides stateless token generation and validation using PyJWT.
Tokens survive server restarts since validation is done via signature
verification, not by looking up tokens in a store. There is no
revocation list: a token stays valid until it expires.
"""

import logging
import time

import jwt

from oauth.errors import InvalidToken
from oauth.models import TokenResponse

logger = logging.getLogger(__name__)

# JWT configuration
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 7 * 24 * 60 * 60  # 7 days
REFRESH_TOKEN_EXPIRE_SECONDS = 30 * 24 * 60 * 60  # 30 days

ACCESS = "access"
REFRESH = "refresh"


class TokenIssuer:
    """Mints and verifies signed bearer tokens.

    The signing secret is injected here and never read from process-wide
    state, so tests and multiple apps can each use their own.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = JWT_ALGORITHM,
        access_ttl: int = ACCESS_TOKEN_EXPIRE_SECONDS,
        refresh_ttl: int = REFRESH_TOKEN_EXPIRE_SECONDS,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _issue(self, subject: str, token_type: str, expires_in: int) -> str:
        now = int(time.time())
        payload = {
            "sub": subject,       # Subject (verified email) - standard claim
            "type": token_type,   # access or refresh
            "iat": now,           # Issued at - standard claim
            "exp": now + expires_in,  # Expiration - standard claim
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def issue_access_token(self, subject: str) -> str:
        """Create an access token valid for ``access_ttl`` seconds."""
        return self._issue(subject, ACCESS, self.access_ttl)

    def issue_refresh_token(self, subject: str) -> str:
        """Create a refresh token valid for ``refresh_ttl`` seconds."""
        return self._issue(subject, REFRESH, self.refresh_ttl)

    def issue_token_pair(self, subject: str) -> TokenResponse:
        """Create the access/refresh pair returned by the token endpoint."""
        return TokenResponse(
            access_token=self.issue_access_token(subject),
            token_type="Bearer",
            expires_in=self.access_ttl,
            refresh_token=self.issue_refresh_token(subject),
        )

    def verify(self, token: str) -> dict:
        """Verify signature and expiry and return the claims.

        The ``type`` claim is NOT checked; callers that need a specific kind
        of token must compare it themselves.

        Raises:
            InvalidToken: malformed, badly signed or expired token.
        """
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("[JWT] Token expired")
            raise InvalidToken("Token expired")
        except jwt.InvalidTokenError as e:
            logger.debug(f"[JWT] Invalid token: {e}")
            raise InvalidToken("Invalid token")
