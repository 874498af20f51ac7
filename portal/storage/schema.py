"""
Users/roles schema bootstrap.

The bundled `schema.sql` is idempotent (`CREATE ... IF NOT EXISTS`), so applying it is safe on
every start. What the login pipeline cannot live without is the unique constraint on
`users.external_id`: the insert-if-absent create depends on it. A pre-existing `users` table
that lacks it makes the IF NOT EXISTS a no-op, so the constraint is checked afterwards.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from portal.storage.config import DatabaseConfig, load_database_config

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
EXTERNAL_ID_CONSTRAINT = "users_external_id_key"


class SchemaError(RuntimeError):
    pass


def _connect(dsn: str):
    import psycopg

    return psycopg.connect(dsn)


def schema_sql() -> str:
    return SCHEMA_PATH.read_text(encoding="utf-8")


def apply_schema(dsn: str) -> None:
    """
    Create the users/roles tables if missing and verify the external-id unique constraint.

    Raises:
        SchemaError when `users` exists without the constraint
        psycopg.Error on connection/SQL failure
    """
    with _connect(dsn) as conn:
        with conn.transaction():
            # Replicas starting together serialize here instead of racing on CREATE TABLE.
            conn.execute("SELECT pg_advisory_xact_lock(hashtext('portal.users_schema'));")
            conn.execute(schema_sql())
            row = conn.execute(
                """
                SELECT 1 FROM pg_constraint
                WHERE conname = %s AND conrelid = 'users'::regclass AND contype = 'u';
                """,
                (EXTERNAL_ID_CONSTRAINT,),
            ).fetchone()
    if not row:
        raise SchemaError(
            f"users table has no unique constraint {EXTERNAL_ID_CONSTRAINT}; first logins would not be atomic"
        )


def maybe_apply_schema(cfg: Optional[DatabaseConfig] = None) -> Tuple[bool, str]:
    """
    Startup hook: apply the schema when DB_APPLY_SCHEMA=1 and Postgres is configured.

    Returns: (applied, message)
    """
    cfg = cfg or load_database_config()
    if not cfg.apply_schema_on_startup:
        return False, "DB_APPLY_SCHEMA is disabled"
    if not cfg.dsn:
        return False, "Postgres not configured"
    apply_schema(cfg.dsn)
    return True, "users/roles schema is in place"
