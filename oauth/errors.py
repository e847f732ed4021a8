"""Error taxonomy for the OAuth flow.

Every error carries the message shown to the caller and the HTTP status
it maps to. The FastAPI handler installed by register_error_handlers()
renders them as {"error": "<message>"}.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """Base class for errors surfaced to OAuth callers."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(OAuthError):
    """Missing or malformed request parameters."""

    status_code = 400


class StateError(OAuthError):
    """Pending authorization or authorization code is absent or expired."""

    status_code = 400


class AuthorizationDeniedError(OAuthError):
    """Verified identity is not allowed to use this server."""

    status_code = 403


class UpstreamError(OAuthError):
    """The upstream identity provider exchange failed."""

    status_code = 500


class InvalidToken(OAuthError):
    """Bad signature, malformed, expired or wrong-type token."""

    status_code = 401


class StorageError(OAuthError):
    """The credential store backend failed."""

    status_code = 500


async def oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[OAUTH] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"[OAUTH] {request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


def register_error_handlers(app: FastAPI) -> None:
    """Render every OAuthError raised by a route as a JSON error payload."""
    app.add_exception_handler(OAuthError, oauth_error_handler)
