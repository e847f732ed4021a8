"""OAuth middleware for MCP endpoints.

Validates Bearer tokens on every request to the wrapped app. Uses JWT for
stateless token validation - tokens survive server restarts.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from oauth.errors import InvalidToken
from oauth.jwt_utils import TokenIssuer

logger = logging.getLogger(__name__)


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Reject requests without a valid Bearer token.

    On success the verified claims are attached as ``request.state.user``.
    """

    def __init__(self, app, token_issuer: TokenIssuer, resource_metadata_url: str = None):
        super().__init__(app)
        self.token_issuer = token_issuer
        self.resource_metadata_url = resource_metadata_url

    def _unauthorized(self, message: str) -> JSONResponse:
        challenge = "Bearer"
        if self.resource_metadata_url:
            challenge = f'Bearer resource_metadata="{self.resource_metadata_url}"'
        return JSONResponse(
            {"error": message},
            status_code=401,
            headers={"WWW-Authenticate": challenge},
        )

    async def dispatch(self, request: Request, call_next):
        auth_header = request.headers.get("Authorization")
        if not auth_header:
            logger.info("[AUTH] Request rejected: no Authorization header")
            return self._unauthorized("Missing authorization header")

        scheme, _, token = auth_header.partition(" ")
        if scheme != "Bearer":
            logger.info("[AUTH] Request rejected: not a Bearer token")
            return self._unauthorized("Invalid authorization format")

        if not token.strip():
            logger.info("[AUTH] Request rejected: empty Bearer token")
            return self._unauthorized("Missing bearer token")

        try:
            claims = self.token_issuer.verify(token.strip())
        except InvalidToken:
            logger.info("[AUTH] Request rejected: invalid or expired token")
            return self._unauthorized("Invalid token")

        request.state.user = claims
        logger.debug(f"[AUTH] Request authorized: {claims.get('sub')}")
        return await call_next(request)
