from __future__ import annotations

import logging
import uuid
from typing import Callable, Tuple

from portal.auth.errors import PersistenceError
from portal.auth.models import ExternalProfile, User
from portal.storage.user_store import UserStore

logger = logging.getLogger(__name__)


def _new_internal_id() -> str:
    return str(uuid.uuid4())


class UserReconciler:
    """
    Create-or-update the local user for a provider profile, keyed by external id.

    Returning users only get `email` and `profile_url` refreshed; `username` and `avatar_url`
    are set once at creation. The create is insert-if-absent, so a caller that loses a
    first-login race falls through to the update and sees the row the winner created.
    """

    def __init__(self, store: UserStore, *, id_factory: Callable[[], str] = _new_internal_id) -> None:
        self.store = store
        self.id_factory = id_factory

    def reconcile(self, profile: ExternalProfile) -> User:
        user, _created = self.reconcile_with_status(profile)
        return user

    def reconcile_with_status(self, profile: ExternalProfile) -> Tuple[User, bool]:
        """
        Returns: (user, created_new)

        Raises:
            PersistenceError
        """
        existing = self.store.find_user_by_external_id(profile.external_id)
        if existing is not None:
            return self._update(profile), False

        candidate = User(
            internal_id=self.id_factory(),
            external_id=profile.external_id,
            email=profile.email,
            username=profile.preferred_username,
            avatar_url=profile.avatar_url,
            profile_url=profile.profile_url,
        )
        created = self.store.create_user(candidate)
        if created is not None:
            logger.info("Created user internal_id=%s external_id=%d", created.internal_id, created.external_id)
            return created, True

        # Lost the race to a concurrent first login for the same account.
        logger.info("User external_id=%d created concurrently; updating instead", profile.external_id)
        return self._update(profile), False

    def _update(self, profile: ExternalProfile) -> User:
        user = self.store.update_user(profile.external_id, email=profile.email, profile_url=profile.profile_url)
        if user is None:
            raise PersistenceError(f"User external_id={profile.external_id} vanished during update")
        return user
