from __future__ import annotations

import json

import pytest

from portal.auth.config import load_auth_config
from portal.auth.errors import InvalidProfileError, ResponseParseError
from portal.auth.providers import (
    GenericOAuthAdapter,
    GitHubAdapter,
    HttpRequestSpec,
    TokenRequestInput,
    get_provider_adapter,
)

TOKEN_URL = "https://idp.example.com/oauth/token"
PROFILE_URL = "https://idp.example.com/api/v1/user"


def _generic() -> GenericOAuthAdapter:
    return GenericOAuthAdapter(token_url=TOKEN_URL, profile_url=PROFILE_URL)


def test_generic_token_request_uses_json_body_and_basic_auth() -> None:
    spec = _generic().build_token_request(
        TokenRequestInput(code="abc", client_id="cid", client_secret="csecret", redirect_uri="https://app/cb")
    )
    assert spec.method == "POST"
    assert spec.url == TOKEN_URL
    assert spec.headers["Accept"] == "application/json"
    assert dict(spec.json_body) == {
        "client_id": "cid",
        "client_secret": "csecret",
        "code": "abc",
        "redirect_uri": "https://app/cb",
    }
    assert spec.form_body is None
    assert spec.basic_auth == ("cid", "csecret")


def test_generic_profile_request_carries_only_bearer_auth() -> None:
    adapter = _generic()
    token_spec = adapter.build_token_request(TokenRequestInput(code="abc", client_id="cid", client_secret="s"))
    profile_spec = adapter.build_profile_request("tok123")

    assert profile_spec.method == "GET"
    assert profile_spec.url == PROFILE_URL
    assert profile_spec.headers["Authorization"] == "Bearer tok123"
    assert profile_spec.basic_auth is None
    assert profile_spec.json_body is None
    # Nothing from the token call leaks into the profile call.
    assert "Authorization" not in token_spec.headers


def test_request_spec_headers_are_frozen() -> None:
    headers = {"Accept": "application/json"}
    spec = HttpRequestSpec(method="GET", url=PROFILE_URL, headers=headers)
    headers["Authorization"] = "Bearer leaked"
    assert "Authorization" not in spec.headers
    with pytest.raises(TypeError):
        spec.headers["X-Extra"] = "1"  # type: ignore[index]


def test_generic_token_response_reads_top_level_or_envelope() -> None:
    adapter = _generic()
    assert adapter.parse_token_response('{"access_token": "tok123"}') == "tok123"
    assert adapter.parse_token_response('{"code": 200, "data": {"access_token": "tok456"}}') == "tok456"
    assert adapter.parse_token_response('{"error": "bad_verification_code"}') == ""


def test_token_response_garbage_is_a_parse_error() -> None:
    with pytest.raises(ResponseParseError):
        _generic().parse_token_response("<html>oops</html>")
    with pytest.raises(ResponseParseError):
        _generic().parse_token_response('["not", "an", "object"]')


def test_generic_profile_envelope_is_normalized() -> None:
    body = json.dumps(
        {
            "code": 200,
            "data": {
                "uid": 42,
                "email": "a@b.com",
                "user_name": "alice",
                "nick_name": "Alice",
                "avatar": "https://cdn/a.png",
                "github": "https://github.com/alice",
            },
        }
    )
    profile = _generic().parse_profile_response(body)
    assert profile.external_id == 42
    assert profile.email == "a@b.com"
    assert profile.login == "alice"
    assert profile.display_name == "Alice"
    assert profile.preferred_username == "Alice"
    assert profile.avatar_url == "https://cdn/a.png"
    assert profile.profile_url == "https://github.com/alice"


def test_preferred_username_falls_back_to_login() -> None:
    profile = _generic().parse_profile_response('{"uid": 7, "user_name": "bob", "nick_name": ""}')
    assert profile.preferred_username == "bob"


@pytest.mark.parametrize("body", ['{"id": 0}', '{"uid": null}', "{}", '{"uid": "abc"}', '{"uid": true}'])
def test_profile_without_usable_external_id_is_invalid(body: str) -> None:
    with pytest.raises(InvalidProfileError):
        _generic().parse_profile_response(body)


def test_github_adapter_request_shapes() -> None:
    adapter = GitHubAdapter(token_url="https://gh/token", profile_url="https://gh/user")
    token_spec = adapter.build_token_request(TokenRequestInput(code="abc", client_id="cid", client_secret="s"))
    assert token_spec.form_body is not None and token_spec.form_body["code"] == "abc"
    assert token_spec.json_body is None
    assert token_spec.basic_auth is None
    assert token_spec.headers["Accept"] == "application/json"

    profile_spec = adapter.build_profile_request("tok123")
    assert profile_spec.headers["Accept"] == "application/vnd.github+json"
    assert profile_spec.headers["Authorization"] == "Bearer tok123"


def test_github_profile_is_normalized() -> None:
    body = json.dumps(
        {
            "id": 42,
            "login": "alice",
            "name": None,
            "email": "a@b.com",
            "avatar_url": "https://avatars/a.png",
            "html_url": "https://github.com/alice",
        }
    )
    profile = GitHubAdapter("https://gh/token", "https://gh/user").parse_profile_response(body)
    assert profile.external_id == 42
    assert profile.preferred_username == "alice"
    assert profile.profile_url == "https://github.com/alice"


def test_get_provider_adapter_selects_by_config(monkeypatch) -> None:
    monkeypatch.setenv("OAUTH_PROVIDER", "github")
    load_auth_config.cache_clear()
    adapter = get_provider_adapter(load_auth_config())
    assert adapter.name == "github"
    assert adapter.token_url == "https://github.com/login/oauth/access_token"

    monkeypatch.setenv("OAUTH_PROVIDER", "generic")
    load_auth_config.cache_clear()
    with pytest.raises(ValueError):
        get_provider_adapter(load_auth_config())

    monkeypatch.setenv("OAUTH_TOKEN_URL", TOKEN_URL)
    monkeypatch.setenv("OAUTH_PROFILE_URL", PROFILE_URL)
    load_auth_config.cache_clear()
    adapter = get_provider_adapter(load_auth_config())
    assert adapter.name == "generic"
    assert adapter.profile_url == PROFILE_URL
