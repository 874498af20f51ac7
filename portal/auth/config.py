"""
Configuration for the login service.

Design goals:
- Provider-agnostic (generic OAuth shape by default; GitHub selectable).
- Env-driven (ConfigMap/Secret friendly); nothing here talks to the network.
- Components receive an AuthConfig explicitly; only the API layer calls the loader.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

SUPPORTED_PROVIDERS = ("generic", "github")
SUPPORTED_TOKEN_ALGORITHMS = ("HS256", "HS384", "HS512")


@dataclass(frozen=True)
class AuthConfig:
    # Identity provider
    oauth_provider: str  # generic|github
    oauth_client_id: Optional[str]
    oauth_client_secret: Optional[str]
    oauth_token_url: Optional[str]  # None -> provider default
    oauth_profile_url: Optional[str]  # None -> provider default
    oauth_redirect_uri: Optional[str]
    http_timeout_seconds: float

    # Browser redirect target
    frontend_url: str

    # Session token signing
    token_secret: Optional[str]
    token_algorithm: str
    token_ttl_seconds: int
    token_issuer: Optional[str]

    # Per-login deadline (0 disables)
    login_timeout_seconds: float

    @property
    def oauth_enabled(self) -> bool:
        """Client credentials are set and the provider's endpoints are known."""
        if not (self.oauth_client_id and self.oauth_client_secret):
            return False
        if self.oauth_provider == "github":
            return True
        return bool(self.oauth_token_url and self.oauth_profile_url)


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load login configuration from environment variables.

    Unknown providers/algorithms fall back to the defaults rather than failing startup;
    a missing client id/secret or token secret surfaces as a login-time failure.
    """
    provider = (os.getenv("OAUTH_PROVIDER", "") or "generic").strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        provider = "generic"

    algorithm = (os.getenv("AUTH_TOKEN_ALGORITHM", "") or "HS256").strip().upper()
    if algorithm not in SUPPORTED_TOKEN_ALGORITHMS:
        algorithm = "HS256"

    ttl = int(_env_float("AUTH_TOKEN_TTL_SECONDS", 86400))  # 24h default
    if ttl <= 60:
        ttl = 60

    timeout = _env_float("OAUTH_HTTP_TIMEOUT_SECONDS", 10.0)
    if timeout <= 0:
        timeout = 10.0

    login_timeout = _env_float("AUTH_LOGIN_TIMEOUT_SECONDS", 30.0)
    if login_timeout < 0:
        login_timeout = 0.0

    frontend_url = (_env_str("APP_FRONTEND_URL") or "http://localhost:3000").rstrip("/")

    return AuthConfig(
        oauth_provider=provider,
        oauth_client_id=_env_str("OAUTH_CLIENT_ID"),
        oauth_client_secret=_env_str("OAUTH_CLIENT_SECRET"),
        oauth_token_url=_env_str("OAUTH_TOKEN_URL"),
        oauth_profile_url=_env_str("OAUTH_PROFILE_URL"),
        oauth_redirect_uri=_env_str("OAUTH_REDIRECT_URI"),
        http_timeout_seconds=timeout,
        frontend_url=frontend_url,
        token_secret=_env_str("AUTH_TOKEN_SECRET"),
        token_algorithm=algorithm,
        token_ttl_seconds=ttl,
        token_issuer=_env_str("AUTH_TOKEN_ISSUER"),
        login_timeout_seconds=login_timeout,
    )
