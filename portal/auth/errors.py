"""
Login pipeline error taxonomy.

Every stage translates the raw transport/storage/signing error it sees into one of
these, so the orchestrator only has to deal with a closed set of failure kinds.
"""
from __future__ import annotations


class LoginError(Exception):
    """Base class for failures scoped to a single login attempt."""

    kind = "login_error"


class NetworkError(LoginError):
    """Transport failure, timeout, or an unavailable (5xx) provider endpoint."""

    kind = "network_error"


class ResponseParseError(LoginError):
    """Provider response body could not be decoded into the expected shape."""

    kind = "response_parse_error"


class EmptyTokenError(LoginError):
    """Token response parsed but carried no access token (invalid, expired, or reused code)."""

    kind = "empty_token"


class TokenRejectedError(LoginError):
    """Profile endpoint refused the access token (4xx), so there is no profile to judge."""

    kind = "token_rejected"


class InvalidProfileError(LoginError):
    """Profile response carried no usable external id."""

    kind = "invalid_profile"


class PersistenceError(LoginError):
    kind = "persistence_error"


class PermissionLookupError(LoginError):
    kind = "permission_lookup_error"


class SigningError(LoginError):
    kind = "signing_error"


class LoginCancelled(LoginError):
    """The caller's deadline expired or the caller cancelled between stages."""

    kind = "cancelled"
