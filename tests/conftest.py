"""
Pytest config.

Local imports like `import portal` rely on the repo root being on sys.path. When a global
`pytest` entrypoint is used without an editable install, that doesn't happen reliably during
collection, so we pin it here.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


_ENV_VARS = (
    "OAUTH_PROVIDER",
    "OAUTH_CLIENT_ID",
    "OAUTH_CLIENT_SECRET",
    "OAUTH_TOKEN_URL",
    "OAUTH_PROFILE_URL",
    "OAUTH_REDIRECT_URI",
    "OAUTH_HTTP_TIMEOUT_SECONDS",
    "APP_FRONTEND_URL",
    "AUTH_TOKEN_SECRET",
    "AUTH_TOKEN_ALGORITHM",
    "AUTH_TOKEN_TTL_SECONDS",
    "AUTH_TOKEN_ISSUER",
    "AUTH_LOGIN_TIMEOUT_SECONDS",
    "POSTGRES_DSN",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "DB_APPLY_SCHEMA",
)


@pytest.fixture(autouse=True)
def _isolated_env_and_caches(monkeypatch: pytest.MonkeyPatch):
    """
    Every test starts from an empty login/DB environment, fresh config caches, and no
    process-wide user store. Tests set what they need with monkeypatch.setenv.
    """
    from portal.auth.config import load_auth_config
    from portal.storage.config import load_database_config
    from portal.storage.user_store import reset_user_store

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    load_auth_config.cache_clear()
    load_database_config.cache_clear()
    reset_user_store()
    yield
    load_auth_config.cache_clear()
    load_database_config.cache_clear()
    reset_user_store()
