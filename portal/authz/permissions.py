from __future__ import annotations

from typing import Iterable

from portal.auth.models import PermissionSet
from portal.storage.user_store import UserStore


def normalize_permissions(names: Iterable[str]) -> PermissionSet:
    """Sorted, de-duplicated, blank-free snapshot."""
    return tuple(sorted({str(n).strip() for n in names if n and str(n).strip()}))


class PermissionResolver:
    """
    Resolve a user's permissions from their role memberships.

    Read-only: never touches user or role rows. The result is a snapshot embedded in the
    issued token; later role changes only show up at the next login.
    """

    def __init__(self, store: UserStore) -> None:
        self.store = store

    def resolve(self, internal_id: str) -> PermissionSet:
        """
        Raises:
            PermissionLookupError
        """
        return normalize_permissions(self.store.resolve_permissions(internal_id))
