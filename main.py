"""MCP OAuth Server entry point.

It handles:
- MCP tools via Streamable HTTP (/mcp), behind Bearer token auth
- OAuth 2.1 + PKCE for MCP clients, with Google as the identity provider

Run with ``python main.py`` or ``uvicorn main:app``.
"""
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from starlette.middleware import Middleware
from supabase import Client, create_client

from app import create_app
from config import ConfigError, load_config
from logging_config import setup_logging
from oauth.google import GoogleIdentityProvider
from oauth.jwt_utils import TokenIssuer
from oauth.middleware import BearerAuthMiddleware
from oauth.stores import CredentialStore, MemoryBackend, SupabaseBackend
from tools import mcp

# Load environment: .env in the working directory, if present
_env_file = Path(".env")
if _env_file.exists():
    load_dotenv(_env_file)

try:
    config = load_config()
except ConfigError as e:
    print(f"[X] {e}", file=sys.stderr)
    sys.exit(1)

# Initialize Supabase client (store backend and/or log sink)
supabase: Client = None
if config.supabase_url and config.supabase_key:
    supabase = create_client(config.supabase_url, config.supabase_key)

setup_logging(
    level=config.log_level,
    supabase_client=supabase if config.supabase_logging else None,
)
logger = logging.getLogger(__name__)

logger.info(f"[STARTUP] BASE_URL: {config.base_url}")
logger.info(f"[STARTUP] Store backend: {config.store_backend}")

if config.store_backend == "supabase":
    store = CredentialStore(SupabaseBackend(supabase, config.supabase_state_table))
else:
    logger.warning("[STARTUP] Using in-memory store; OAuth state is lost on restart")
    store = CredentialStore(MemoryBackend())

token_issuer = TokenIssuer(config.jwt_secret)

identity_provider = GoogleIdentityProvider(
    client_id=config.google_client_id,
    client_secret=config.google_client_secret,
    redirect_uri=config.callback_url,
)

# ============== Streamable HTTP MCP App ==============
# Created before the FastAPI app since FastAPI needs its lifespan
mcp_http_app = mcp.http_app(
    path="/",
    transport="streamable-http",
    middleware=[
        Middleware(
            BearerAuthMiddleware,
            token_issuer=token_issuer,
            resource_metadata_url=f"{config.base_url}/.well-known/oauth-protected-resource",
        )
    ],
)

app = create_app(
    config,
    store=store,
    token_issuer=token_issuer,
    identity_provider=identity_provider,
    mcp_app=mcp_http_app,
)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting MCP OAuth server on {config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port)
