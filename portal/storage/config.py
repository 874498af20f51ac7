from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class DatabaseConfig:
    dsn: Optional[str]  # None -> in-memory user store
    apply_schema_on_startup: bool


def _dsn_from_env() -> Optional[str]:
    """POSTGRES_DSN wins; otherwise all of POSTGRES_HOST/DB/USER/PASSWORD must be set."""
    dsn = (os.getenv("POSTGRES_DSN") or "").strip()
    if dsn:
        return dsn
    parts = {k: (os.getenv(f"POSTGRES_{k.upper()}") or "").strip() for k in ("host", "db", "user", "password")}
    if not all(parts.values()):
        return None
    port = (os.getenv("POSTGRES_PORT") or "").strip()
    # make_conninfo quotes passwords with spaces/quotes in them.
    from psycopg.conninfo import make_conninfo

    return make_conninfo(
        host=parts["host"],
        port=port if port.isdigit() else "5432",
        dbname=parts["db"],
        user=parts["user"],
        password=parts["password"],
    )


@lru_cache(maxsize=1)
def load_database_config() -> DatabaseConfig:
    flag = (os.getenv("DB_APPLY_SCHEMA") or "").strip().lower()
    return DatabaseConfig(
        dsn=_dsn_from_env(),
        apply_schema_on_startup=flag in ("1", "true", "yes", "on"),
    )
