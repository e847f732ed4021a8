"""Config management for mcp-oauth-server.

Settings come from environment variables (main.py loads ``.env`` first).
"""
import os
from typing import Mapping, Optional

from oauth.endpoints import DEFAULT_CALLBACK_PATH

REQUIRED_VARS = (
    "GOOGLE_CLIENT_ID",
    "GOOGLE_CLIENT_SECRET",
    "JWT_SECRET",
    "ALLOWED_EMAIL",
    "BASE_URL",
)


class ConfigError(Exception):
    """A required setting is missing or invalid."""


class Config:
    """Configuration container."""

    def __init__(self, data: dict = None):
        self.data = data or {}

    @property
    def google_client_id(self) -> Optional[str]:
        return self.data.get("GOOGLE_CLIENT_ID")

    @property
    def google_client_secret(self) -> Optional[str]:
        return self.data.get("GOOGLE_CLIENT_SECRET")

    @property
    def jwt_secret(self) -> Optional[str]:
        return self.data.get("JWT_SECRET")

    @property
    def allowed_email(self) -> Optional[str]:
        return self.data.get("ALLOWED_EMAIL")

    @property
    def base_url(self) -> str:
        return (self.data.get("BASE_URL") or "").rstrip("/")

    @property
    def callback_url(self) -> str:
        return f"{self.base_url}{DEFAULT_CALLBACK_PATH}"

    @property
    def host(self) -> str:
        return self.data.get("HOST", "0.0.0.0")

    @property
    def port(self) -> int:
        return int(self.data.get("PORT", "8080"))

    @property
    def store_backend(self) -> str:
        return self.data.get("STORE_BACKEND", "memory").lower()

    @property
    def supabase_url(self) -> Optional[str]:
        return self.data.get("SUPABASE_URL")

    @property
    def supabase_key(self) -> Optional[str]:
        return self.data.get("SUPABASE_KEY")

    @property
    def supabase_state_table(self) -> str:
        return self.data.get("SUPABASE_STATE_TABLE", "oauth_state")

    @property
    def supabase_logging(self) -> bool:
        return self.data.get("SUPABASE_LOGGING", "false").lower() == "true"

    @property
    def log_level(self) -> str:
        return self.data.get("LOG_LEVEL", "INFO").upper()

    def validate(self) -> None:
        """Raise ConfigError if a required setting is missing or inconsistent."""
        for name in REQUIRED_VARS:
            if not self.data.get(name):
                raise ConfigError(f"Missing required environment variable: {name}")

        try:
            self.port
        except ValueError:
            raise ConfigError(f"PORT must be an integer, got {self.data.get('PORT')!r}")

        if self.store_backend not in ("memory", "supabase"):
            raise ConfigError(f"Unknown STORE_BACKEND: {self.store_backend}")

        if self.store_backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ConfigError("STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_KEY")


def load_config(environ: Mapping[str, str] = None) -> Config:
    """Build and validate config from the environment."""
    config = Config(dict(os.environ if environ is None else environ))
    config.validate()
    return config
