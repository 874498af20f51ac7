"""
User/role storage.

The login pipeline needs four operations from storage. The create is insert-if-absent:
it relies on the unique constraint on `users.external_id`, so two concurrent first logins
for the same provider account can never both insert.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Protocol, Set

from portal.auth.errors import PermissionLookupError, PersistenceError
from portal.auth.models import User
from portal.storage.config import DatabaseConfig, load_database_config

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    def find_user_by_external_id(self, external_id: int) -> Optional[User]:
        ...

    def create_user(self, user: User) -> Optional[User]:
        """Insert if no row has this external id. Returns None when one already exists."""
        ...

    def update_user(self, external_id: int, *, email: Optional[str], profile_url: Optional[str]) -> Optional[User]:
        """Overwrite the mutable profile fields. Returns None when no row matched."""
        ...

    def resolve_permissions(self, internal_id: str) -> List[str]:
        ...


def _connect(dsn: str):
    import psycopg

    return psycopg.connect(dsn)


_USER_COLUMNS = "id::text, external_id, email, username, avatar_url, profile_url"


def _row_to_user(row) -> User:  # type: ignore[no-untyped-def]
    internal_id, external_id, email, username, avatar_url, profile_url = row
    return User(
        internal_id=str(internal_id),
        external_id=int(external_id),
        email=email,
        username=username or "",
        avatar_url=avatar_url,
        profile_url=profile_url,
    )


class PostgresUserStore:
    """Postgres-backed store. One short-lived connection per operation."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn

    def find_user_by_external_id(self, external_id: int) -> Optional[User]:
        import psycopg

        try:
            with _connect(self.dsn) as conn:
                row = conn.execute(
                    f"SELECT {_USER_COLUMNS} FROM users WHERE external_id = %s;",
                    (int(external_id),),
                ).fetchone()
        except psycopg.Error as e:
            raise PersistenceError("Failed to look up user") from e
        return _row_to_user(row) if row else None

    def create_user(self, user: User) -> Optional[User]:
        import psycopg

        try:
            with _connect(self.dsn) as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO users(id, external_id, email, username, avatar_url, profile_url)
                    VALUES (%s::uuid, %s, %s, %s, %s, %s)
                    ON CONFLICT (external_id) DO NOTHING
                    RETURNING {_USER_COLUMNS};
                    """,
                    (
                        user.internal_id,
                        int(user.external_id),
                        user.email,
                        user.username,
                        user.avatar_url,
                        user.profile_url,
                    ),
                ).fetchone()
        except psycopg.Error as e:
            raise PersistenceError("Failed to create user") from e
        return _row_to_user(row) if row else None

    def update_user(self, external_id: int, *, email: Optional[str], profile_url: Optional[str]) -> Optional[User]:
        import psycopg

        try:
            with _connect(self.dsn) as conn:
                row = conn.execute(
                    f"""
                    UPDATE users
                    SET email = %s,
                        profile_url = %s,
                        updated_at = now()
                    WHERE external_id = %s
                    RETURNING {_USER_COLUMNS};
                    """,
                    (email, profile_url, int(external_id)),
                ).fetchone()
        except psycopg.Error as e:
            raise PersistenceError("Failed to update user") from e
        return _row_to_user(row) if row else None

    def resolve_permissions(self, internal_id: str) -> List[str]:
        import psycopg

        try:
            with _connect(self.dsn) as conn:
                rows = conn.execute(
                    """
                    SELECT DISTINCT p.name
                    FROM user_roles ur
                    JOIN role_permissions rp ON rp.role_id = ur.role_id
                    JOIN permissions p ON p.id = rp.permission_id
                    WHERE ur.user_id = %s::uuid
                    ORDER BY p.name;
                    """,
                    (str(internal_id),),
                ).fetchall()
        except psycopg.Error as e:
            raise PermissionLookupError("Failed to resolve permissions") from e
        return [str(r[0]) for r in rows if r and r[0]]


class InMemoryUserStore:
    """
    Process-local store for development and tests (fallback when Postgres is not configured).

    Same contract as PostgresUserStore; the lock plays the part of the unique constraint.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: Dict[int, User] = {}
        self._role_permissions: Dict[str, Set[str]] = {}
        self._user_roles: Dict[str, Set[str]] = {}

    def find_user_by_external_id(self, external_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(int(external_id))

    def create_user(self, user: User) -> Optional[User]:
        with self._lock:
            if user.external_id in self._users:
                return None
            self._users[user.external_id] = user
            return user

    def update_user(self, external_id: int, *, email: Optional[str], profile_url: Optional[str]) -> Optional[User]:
        with self._lock:
            existing = self._users.get(int(external_id))
            if existing is None:
                return None
            updated = replace(existing, email=email, profile_url=profile_url)
            self._users[existing.external_id] = updated
            return updated

    def resolve_permissions(self, internal_id: str) -> List[str]:
        with self._lock:
            perms: Set[str] = set()
            for role in self._user_roles.get(internal_id, set()):
                perms.update(self._role_permissions.get(role, set()))
            return sorted(perms)

    def define_role(self, role: str, permissions: List[str]) -> None:
        with self._lock:
            self._role_permissions[role] = set(permissions)

    def assign_role(self, internal_id: str, role: str) -> None:
        with self._lock:
            self._user_roles.setdefault(internal_id, set()).add(role)

    def users(self) -> List[User]:
        with self._lock:
            return list(self._users.values())


_store: Optional[UserStore] = None
_store_lock = threading.Lock()


def get_user_store(cfg: Optional[DatabaseConfig] = None) -> UserStore:
    """
    Return the process-wide store: Postgres when configured, otherwise in-memory.
    """
    global _store
    if _store is not None:
        return _store
    with _store_lock:
        if _store is not None:
            return _store
        dsn = (cfg or load_database_config()).dsn
        if dsn:
            _store = PostgresUserStore(dsn)
        else:
            logger.warning("Postgres not configured (POSTGRES_DSN/POSTGRES_*); using in-memory user store")
            _store = InMemoryUserStore()
        return _store


def reset_user_store() -> None:
    global _store
    with _store_lock:
        _store = None
