from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt  # PyJWT

from portal.auth.config import AuthConfig
from portal.auth.errors import SigningError
from portal.auth.models import PermissionSet, User


class TokenIssuer:
    """Sign and verify session tokens carrying identity + permission claims."""

    def __init__(
        self,
        secret: Optional[str],
        *,
        algorithm: str = "HS256",
        ttl_seconds: int = 86400,
        issuer: Optional[str] = None,
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.issuer = issuer

    @classmethod
    def from_config(cls, cfg: AuthConfig) -> "TokenIssuer":
        return cls(
            cfg.token_secret,
            algorithm=cfg.token_algorithm,
            ttl_seconds=cfg.token_ttl_seconds,
            issuer=cfg.token_issuer,
        )

    def issue(self, user: User, permissions: PermissionSet, *, now: Optional[float] = None) -> str:
        """
        Raises:
            SigningError
        """
        if not self.secret:
            raise SigningError("Session signing is not configured (AUTH_TOKEN_SECRET)")

        iat = int(now if now is not None else time.time())
        claims: Dict[str, Any] = {
            "sub": user.internal_id,
            "email": user.email,
            "avatar_url": user.avatar_url,
            "username": user.username,
            "profile_url": user.profile_url,
            "permissions": list(permissions),
            "iat": iat,
            "exp": iat + int(self.ttl_seconds),
        }
        if self.issuer:
            claims["iss"] = self.issuer

        try:
            return jwt.encode(claims, self.secret, algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise SigningError("Failed to sign session token") from e

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, expiry (and issuer, when configured) and return the claims.

        Raises:
            jwt.InvalidTokenError (incl. ExpiredSignatureError)
            SigningError when no secret is configured
        """
        if not self.secret:
            raise SigningError("Session signing is not configured (AUTH_TOKEN_SECRET)")
        kwargs: Dict[str, Any] = {}
        if self.issuer:
            kwargs["issuer"] = self.issuer
        claims = jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            options={"require": ["exp", "iat", "sub"]},
            **kwargs,
        )
        if not isinstance(claims, dict):
            raise jwt.InvalidTokenError("Invalid session token claims")
        return claims
