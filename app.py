"""FastAPI application factory.

Wires the OAuth router, error handling and the protected MCP app together.
Collaborators are passed in so tests can swap the store and the identity
provider.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import Config
from oauth.endpoints import DEFAULT_CALLBACK_PATH, create_oauth_router
from oauth.errors import register_error_handlers
from oauth.flow import AuthorizationFlow, allow_only
from oauth.google import GoogleIdentityProvider
from oauth.jwt_utils import TokenIssuer
from oauth.stores import CredentialStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(
    config: Config,
    store: CredentialStore,
    token_issuer: TokenIssuer,
    identity_provider: GoogleIdentityProvider,
    mcp_app=None,
) -> FastAPI:
    """Build the server.

    Args:
        config: Validated configuration
        store: Credential store for OAuth state
        token_issuer: Signs and verifies bearer tokens
        identity_provider: Upstream (Google) OAuth client
        mcp_app: Optional ASGI app, already wrapped in BearerAuthMiddleware,
            mounted at /mcp. Its lifespan becomes the app's lifespan.
    """
    app = FastAPI(
        title="MCP OAuth Server",
        description="MCP server protected by OAuth 2.1 with PKCE and Google sign-in",
        version=VERSION,
        lifespan=getattr(mcp_app, "lifespan", None),
    )

    # Browser-based MCP clients call /token and /register cross-origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    flow = AuthorizationFlow(
        store=store,
        token_issuer=token_issuer,
        identity_provider=identity_provider,
        is_allowed=allow_only(config.allowed_email),
    )
    app.include_router(create_oauth_router(flow, config.base_url, DEFAULT_CALLBACK_PATH))

    if mcp_app is not None:
        app.mount("/mcp", mcp_app)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/")
    async def root():
        """Root endpoint with server info."""
        return {
            "name": "MCP OAuth Server",
            "version": VERSION,
            "endpoints": {"mcp": f"{config.base_url}/mcp"},
            "oauth": {
                "protected_resource": f"{config.base_url}/.well-known/oauth-protected-resource",
                "authorization_server": f"{config.base_url}/.well-known/oauth-authorization-server",
            },
        }

    return app
