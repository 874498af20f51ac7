"""
Identity provider adapters.

One login pipeline, parameterized by an adapter that knows a provider's wire formats:
how to ask for an access token and how to read the profile back.

Supported variants:
- generic: OpenBuild-style OAuth (JSON body + HTTP Basic on the token call,
  profile wrapped in a `data` envelope keyed by `uid`)
- github: GitHub OAuth apps (`Accept: application/json` form post, `/user` profile keyed by `id`)
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from portal.auth.config import AuthConfig
from portal.auth.errors import InvalidProfileError, ResponseParseError
from portal.auth.models import ExternalProfile


@dataclass(frozen=True)
class HttpRequestSpec:
    """
    Immutable description of one outbound call.

    Each call gets its own descriptor; headers are frozen so nothing set for the token call can
    bleed into the profile call.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    json_body: Optional[Mapping[str, Any]] = None
    form_body: Optional[Mapping[str, str]] = None
    basic_auth: Optional[Tuple[str, str]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        if self.json_body is not None:
            object.__setattr__(self, "json_body", MappingProxyType(dict(self.json_body)))
        if self.form_body is not None:
            object.__setattr__(self, "form_body", MappingProxyType(dict(self.form_body)))

    def describe(self) -> str:
        # Safe for logs: no bodies, no auth values.
        return f"{self.method} {self.url}"


@dataclass(frozen=True)
class TokenRequestInput:
    code: str
    client_id: str
    client_secret: str
    redirect_uri: Optional[str] = None


class ProviderAdapter(Protocol):
    """Capability set every identity provider variant implements."""

    name: str

    def build_token_request(self, req: TokenRequestInput) -> HttpRequestSpec:
        ...

    def parse_token_response(self, body: str) -> str:
        """Return the access token ("" when the provider returned none)."""
        ...

    def build_profile_request(self, access_token: str) -> HttpRequestSpec:
        ...

    def parse_profile_response(self, body: str) -> ExternalProfile:
        ...


def _load_json_object(body: str, what: str) -> Dict[str, Any]:
    try:
        data = json.loads(body or "")
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"Failed to parse {what} response") from e
    if not isinstance(data, dict):
        raise ResponseParseError(f"Invalid {what} response (expected JSON object)")
    return data


def _opt_str(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def _external_id(v: Any) -> int:
    # bool is an int subclass; `true` is never a real account id.
    if v is None or isinstance(v, bool):
        raise InvalidProfileError("Profile is missing an external id")
    try:
        ext = int(str(v).strip())
    except ValueError as e:
        raise InvalidProfileError("Profile external id is not an integer") from e
    if ext == 0:
        raise InvalidProfileError("Profile external id is zero")
    return ext


def _token_from(data: Dict[str, Any]) -> str:
    tok = data.get("access_token")
    if tok is None and isinstance(data.get("data"), dict):
        tok = data["data"].get("access_token")
    return str(tok or "").strip()


def _bearer_headers(access_token: str) -> Dict[str, str]:
    return {
        "Accept": "application/json",
        "Authorization": f"Bearer {access_token}",
    }


class GenericOAuthAdapter:
    name = "generic"

    def __init__(self, token_url: str, profile_url: str) -> None:
        self.token_url = token_url
        self.profile_url = profile_url

    def build_token_request(self, req: TokenRequestInput) -> HttpRequestSpec:
        body: Dict[str, str] = {
            "client_id": req.client_id,
            "client_secret": req.client_secret,
            "code": req.code,
        }
        if req.redirect_uri:
            body["redirect_uri"] = req.redirect_uri
        return HttpRequestSpec(
            method="POST",
            url=self.token_url,
            headers={"Accept": "application/json"},
            json_body=body,
            basic_auth=(req.client_id, req.client_secret),
        )

    def parse_token_response(self, body: str) -> str:
        return _token_from(_load_json_object(body, "token"))

    def build_profile_request(self, access_token: str) -> HttpRequestSpec:
        return HttpRequestSpec(method="GET", url=self.profile_url, headers=_bearer_headers(access_token))

    def parse_profile_response(self, body: str) -> ExternalProfile:
        data = _load_json_object(body, "profile")
        # Profile may or may not be wrapped in a {"code": ..., "data": {...}} envelope.
        inner = data.get("data")
        if isinstance(inner, dict):
            data = inner
        return ExternalProfile(
            external_id=_external_id(data.get("uid", data.get("id"))),
            email=_opt_str(data.get("email")),
            login=_opt_str(data.get("user_name") or data.get("username")),
            display_name=_opt_str(data.get("nick_name") or data.get("name")),
            avatar_url=_opt_str(data.get("avatar") or data.get("avatar_url")),
            profile_url=_opt_str(data.get("github") or data.get("profile_url")),
        )


class GitHubAdapter:
    name = "github"

    def __init__(self, token_url: str, profile_url: str) -> None:
        self.token_url = token_url
        self.profile_url = profile_url

    def build_token_request(self, req: TokenRequestInput) -> HttpRequestSpec:
        form: Dict[str, str] = {
            "client_id": req.client_id,
            "client_secret": req.client_secret,
            "code": req.code,
        }
        if req.redirect_uri:
            form["redirect_uri"] = req.redirect_uri
        # Without Accept: application/json GitHub answers form-encoded.
        return HttpRequestSpec(
            method="POST",
            url=self.token_url,
            headers={"Accept": "application/json"},
            form_body=form,
        )

    def parse_token_response(self, body: str) -> str:
        # Bad/expired codes come back as 200 {"error": "bad_verification_code", ...}.
        return _token_from(_load_json_object(body, "token"))

    def build_profile_request(self, access_token: str) -> HttpRequestSpec:
        headers = _bearer_headers(access_token)
        headers["Accept"] = "application/vnd.github+json"
        headers["X-GitHub-Api-Version"] = "2022-11-28"
        return HttpRequestSpec(method="GET", url=self.profile_url, headers=headers)

    def parse_profile_response(self, body: str) -> ExternalProfile:
        data = _load_json_object(body, "profile")
        return ExternalProfile(
            external_id=_external_id(data.get("id")),
            email=_opt_str(data.get("email")),
            login=_opt_str(data.get("login")),
            display_name=_opt_str(data.get("name")),
            avatar_url=_opt_str(data.get("avatar_url")),
            profile_url=_opt_str(data.get("html_url")),
        )


# Only providers with well-known public endpoints get defaults.
DEFAULT_ENDPOINTS: Dict[str, Tuple[str, str]] = {
    "github": ("https://github.com/login/oauth/access_token", "https://api.github.com/user"),
}

_ADAPTERS = {
    "generic": GenericOAuthAdapter,
    "github": GitHubAdapter,
}


def get_provider_adapter(cfg: AuthConfig) -> ProviderAdapter:
    """Select the adapter variant from configuration; endpoints may be overridden per deployment."""
    name = cfg.oauth_provider if cfg.oauth_provider in _ADAPTERS else "generic"
    default_token_url, default_profile_url = DEFAULT_ENDPOINTS.get(name, (None, None))
    token_url = cfg.oauth_token_url or default_token_url
    profile_url = cfg.oauth_profile_url or default_profile_url
    if not token_url or not profile_url:
        raise ValueError(f"OAUTH_TOKEN_URL and OAUTH_PROFILE_URL are required for provider {name!r}")
    return _ADAPTERS[name](token_url=token_url, profile_url=profile_url)
