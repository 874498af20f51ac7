from __future__ import annotations

from portal.auth.config import load_auth_config


def test_defaults_when_env_is_empty() -> None:
    cfg = load_auth_config()
    assert cfg.oauth_provider == "generic"
    assert cfg.frontend_url == "http://localhost:3000"
    assert cfg.token_algorithm == "HS256"
    assert cfg.token_ttl_seconds == 86400
    assert cfg.http_timeout_seconds == 10.0
    assert cfg.login_timeout_seconds == 30.0
    assert cfg.token_secret is None
    assert cfg.oauth_enabled is False


def test_unknown_provider_and_algorithm_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("OAUTH_PROVIDER", "myspace")
    monkeypatch.setenv("AUTH_TOKEN_ALGORITHM", "none")
    load_auth_config.cache_clear()
    cfg = load_auth_config()
    assert cfg.oauth_provider == "generic"
    assert cfg.token_algorithm == "HS256"


def test_numeric_values_are_clamped(monkeypatch) -> None:
    monkeypatch.setenv("AUTH_TOKEN_TTL_SECONDS", "5")
    monkeypatch.setenv("OAUTH_HTTP_TIMEOUT_SECONDS", "-1")
    monkeypatch.setenv("AUTH_LOGIN_TIMEOUT_SECONDS", "-3")
    load_auth_config.cache_clear()
    cfg = load_auth_config()
    assert cfg.token_ttl_seconds == 60
    assert cfg.http_timeout_seconds == 10.0
    assert cfg.login_timeout_seconds == 0.0


def test_garbage_numbers_use_defaults(monkeypatch) -> None:
    monkeypatch.setenv("AUTH_TOKEN_TTL_SECONDS", "a day")
    load_auth_config.cache_clear()
    assert load_auth_config().token_ttl_seconds == 86400


def test_frontend_url_trailing_slash_is_stripped(monkeypatch) -> None:
    monkeypatch.setenv("APP_FRONTEND_URL", "https://portal.example.com/")
    load_auth_config.cache_clear()
    assert load_auth_config().frontend_url == "https://portal.example.com"


def test_generic_provider_needs_endpoints_to_be_enabled(monkeypatch) -> None:
    monkeypatch.setenv("OAUTH_CLIENT_ID", "cid")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "csecret")
    load_auth_config.cache_clear()
    assert load_auth_config().oauth_enabled is False

    monkeypatch.setenv("OAUTH_TOKEN_URL", "https://idp.example.com/oauth/token")
    monkeypatch.setenv("OAUTH_PROFILE_URL", "https://idp.example.com/api/user")
    load_auth_config.cache_clear()
    assert load_auth_config().oauth_enabled is True


def test_github_provider_has_default_endpoints(monkeypatch) -> None:
    monkeypatch.setenv("OAUTH_PROVIDER", "GitHub")
    monkeypatch.setenv("OAUTH_CLIENT_ID", "cid")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "csecret")
    load_auth_config.cache_clear()
    cfg = load_auth_config()
    assert cfg.oauth_provider == "github"
    assert cfg.oauth_enabled is True
