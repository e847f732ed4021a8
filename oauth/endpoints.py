"""OAuth 2.1 endpoints for MCP server authentication.

This module contains all OAuth-related endpoints:
- Discovery metadata (/.well-known/*)
- Client registration (/register)
- Authorization flow (/authorize, Google callback)
- Token endpoint (/token)

Routes translate HTTP to AuthorizationFlow calls. Errors raised by the flow
are OAuthError subclasses and are rendered by the app's exception handler.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from oauth.errors import ValidationError
from oauth.flow import AuthorizationFlow
from oauth.pkce import SUPPORTED_METHODS

logger = logging.getLogger(__name__)

DEFAULT_CALLBACK_PATH = "/oauth/google/callback"
SCOPES_SUPPORTED = ["mcp:tools", "mcp:read"]

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_body(request: Request) -> dict:
    """Read a JSON or form-encoded request body as a dict."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return dict(form)

    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid request body")

    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")
    return data


def create_oauth_router(
    flow: AuthorizationFlow,
    server_url: str,
    callback_path: str = DEFAULT_CALLBACK_PATH,
) -> APIRouter:
    """Build the OAuth router around an AuthorizationFlow."""
    router = APIRouter(tags=["oauth"])

    # ============== OAuth 2.1 Discovery Endpoints ==============

    @router.get("/.well-known/oauth-protected-resource")
    async def oauth_protected_resource():
        """OAuth 2.0 Protected Resource Metadata (RFC 9728)."""
        return {
            "resource": server_url,
            "authorization_servers": [server_url],
            "scopes_supported": SCOPES_SUPPORTED,
            "bearer_methods_supported": ["header"],
        }

    @router.get("/.well-known/oauth-authorization-server")
    async def oauth_authorization_server():
        """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
        return {
            "issuer": server_url,
            "authorization_endpoint": f"{server_url}/authorize",
            "token_endpoint": f"{server_url}/token",
            "registration_endpoint": f"{server_url}/register",
            "scopes_supported": SCOPES_SUPPORTED,
            "response_types_supported": ["code"],
            "response_modes_supported": ["query"],
            "grant_types_supported": ["authorization_code", "refresh_token"],
            "token_endpoint_auth_methods_supported": ["none", "client_secret_post"],
            "code_challenge_methods_supported": list(SUPPORTED_METHODS),
        }

    # ============== Client Registration ==============

    @router.post("/register")
    async def register_client(request: Request):
        """OAuth 2.0 Dynamic Client Registration (RFC 7591)."""
        data = await read_body(request)
        return JSONResponse(await flow.register_client(data.get("redirect_uris")))

    # ============== Authorization Flow ==============

    @router.get("/authorize")
    async def authorize(
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        state: Optional[str] = None,
        code_challenge: Optional[str] = None,
        code_challenge_method: Optional[str] = None,
    ):
        """OAuth 2.0 Authorization Endpoint - redirects to Google."""
        url = await flow.authorize(
            client_id=client_id,
            redirect_uri=redirect_uri,
            state=state,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
        return RedirectResponse(url=url, status_code=302)

    @router.get(callback_path)
    async def google_callback(
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
    ):
        """Google redirects here after consent; we redirect on to the client."""
        url = await flow.callback(code=code, state=state, error=error)
        return RedirectResponse(url=url, status_code=302)

    # ============== Token Endpoint ==============

    @router.post("/token")
    async def token(request: Request):
        """OAuth 2.0 Token Endpoint (JSON or form-encoded body)."""
        data = await read_body(request)
        tokens = await flow.exchange_token(data)
        return JSONResponse(tokens.model_dump())

    return router
