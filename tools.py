"""MCP tools for mcp-oauth-server.

This module defines the MCP tools exposed to authenticated clients.
Replace ``echo`` with real tools when building on this server.
"""

import logging
from datetime import datetime, timezone

from fastmcp import FastMCP
from fastmcp.server.dependencies import get_http_request

logger = logging.getLogger(__name__)

# Create the FastMCP server instance
mcp = FastMCP("mcp-oauth-server")


def current_user() -> str:
    """Subject of the bearer token that authorized the current MCP request."""
    request = get_http_request()
    user = getattr(request.state, "user", None) or {}
    return user.get("sub", "unknown")


def build_echo(message: str, user: str) -> dict:
    if not message:
        raise ValueError("message is required")
    return {
        "echo": message,
        "user": user,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@mcp.tool()
def echo(message: str) -> dict:
    """Echo back the input message.

    Args:
        message: The message to echo back

    Returns:
        The message together with the caller and a timestamp
    """
    user = current_user()
    logger.info(f"[TOOL] echo invoked by {user}, message length: {len(message)}")
    return build_echo(message, user)
