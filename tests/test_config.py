"""Tests for environment configuration."""

import pytest

from config import REQUIRED_VARS, ConfigError, load_config

ENV = {
    "GOOGLE_CLIENT_ID": "test-client-id",
    "GOOGLE_CLIENT_SECRET": "test-client-secret",
    "JWT_SECRET": "test-jwt-secret-that-is-long-enough",
    "ALLOWED_EMAIL": "test@example.com",
    "BASE_URL": "http://localhost:8080/",
}


def test_load_config_from_environment():
    config = load_config(ENV)

    assert config.google_client_id == "test-client-id"
    assert config.google_client_secret == "test-client-secret"
    assert config.jwt_secret == "test-jwt-secret-that-is-long-enough"
    assert config.allowed_email == "test@example.com"
    assert config.base_url == "http://localhost:8080"
    assert config.callback_url == "http://localhost:8080/oauth/google/callback"


def test_defaults():
    config = load_config(ENV)

    assert config.port == 8080
    assert config.host == "0.0.0.0"
    assert config.store_backend == "memory"
    assert config.supabase_state_table == "oauth_state"
    assert config.supabase_logging is False
    assert config.log_level == "INFO"


def test_reads_os_environ_by_default(monkeypatch):
    for name, value in ENV.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("PORT", "9000")

    assert load_config().port == 9000


@pytest.mark.parametrize("name", REQUIRED_VARS)
def test_missing_required_variable(name):
    env = {k: v for k, v in ENV.items() if k != name}

    with pytest.raises(ConfigError, match=name):
        load_config(env)


def test_invalid_port():
    with pytest.raises(ConfigError, match="PORT"):
        load_config({**ENV, "PORT": "eighty"})


def test_unknown_store_backend():
    with pytest.raises(ConfigError, match="STORE_BACKEND"):
        load_config({**ENV, "STORE_BACKEND": "redis"})


def test_supabase_backend_requires_credentials():
    with pytest.raises(ConfigError, match="SUPABASE_URL"):
        load_config({**ENV, "STORE_BACKEND": "supabase"})

    config = load_config({**ENV, "STORE_BACKEND": "supabase", "SUPABASE_URL": "https://x.supabase.co", "SUPABASE_KEY": "k"})
    assert config.store_backend == "supabase"
