from __future__ import annotations

import pytest

from portal.auth.errors import PermissionLookupError
from portal.authz.permissions import PermissionResolver, normalize_permissions
from portal.storage.user_store import InMemoryUserStore


def test_normalize_permissions_sorts_dedupes_and_drops_blanks() -> None:
    assert normalize_permissions(["b", "a", "b", " ", "", " c "]) == ("a", "b", "c")


def test_user_without_roles_has_no_permissions() -> None:
    assert PermissionResolver(InMemoryUserStore()).resolve("u-1") == ()


def test_resolver_unions_role_permissions() -> None:
    store = InMemoryUserStore()
    store.define_role("editor", ["docs.write", "docs.read"])
    store.define_role("reader", ["docs.read"])
    store.assign_role("u-1", "editor")
    store.assign_role("u-1", "reader")
    assert PermissionResolver(store).resolve("u-1") == ("docs.read", "docs.write")


def test_resolver_propagates_lookup_errors() -> None:
    class _Broken(InMemoryUserStore):
        def resolve_permissions(self, internal_id):  # type: ignore[no-untyped-def]
            raise PermissionLookupError("db down")

    with pytest.raises(PermissionLookupError):
        PermissionResolver(_Broken()).resolve("u-1")
