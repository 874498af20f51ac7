from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

PermissionSet = Tuple[str, ...]


@dataclass(frozen=True)
class ExternalProfile:
    """Provider profile normalized across adapters. Created per request, never stored."""

    external_id: int
    email: Optional[str] = None
    login: Optional[str] = None  # provider handle
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    profile_url: Optional[str] = None

    @property
    def preferred_username(self) -> str:
        return (self.display_name or "").strip() or (self.login or "").strip()


@dataclass(frozen=True)
class User:
    """Local user record keyed by the provider's external id."""

    internal_id: str
    external_id: int
    email: Optional[str]
    username: str
    avatar_url: Optional[str]
    profile_url: Optional[str]

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.internal_id,
            "externalId": self.external_id,
            "email": self.email,
            "username": self.username,
            "avatarUrl": self.avatar_url,
            "profileUrl": self.profile_url,
        }


@dataclass(frozen=True)
class LoginResult:
    user: User
    permissions: PermissionSet
    token: str


@dataclass(frozen=True)
class LoginFailure:
    stage: str  # exchange|fetch|reconcile|resolve|issue
    kind: str
    reason_code: str
    message: str = "Login failed. Please try again later."


@dataclass(frozen=True)
class LoginOutcome:
    result: Optional[LoginResult] = None
    failure: Optional[LoginFailure] = None

    @property
    def ok(self) -> bool:
        return self.result is not None
