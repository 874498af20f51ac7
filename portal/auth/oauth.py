"""
Authorization-code exchange and profile fetch.

Both calls are single-shot: an authorization code is single-use, so retrying the same code
after a transient failure would most likely fail anyway. Retry policy belongs to the caller.
"""
from __future__ import annotations

import logging
from typing import Optional

from portal.auth.errors import EmptyTokenError, TokenRejectedError
from portal.auth.http import HttpClient
from portal.auth.models import ExternalProfile
from portal.auth.providers import ProviderAdapter, TokenRequestInput
from portal.auth.util import Deadline

logger = logging.getLogger(__name__)


class OAuthCodeExchanger:
    def __init__(self, adapter: ProviderAdapter, http: HttpClient, *, timeout_seconds: float = 10.0) -> None:
        self.adapter = adapter
        self.http = http
        self.timeout_seconds = timeout_seconds

    def exchange(
        self,
        code: str,
        client_id: str,
        client_secret: str,
        redirect_uri: Optional[str] = None,
        *,
        deadline: Optional[Deadline] = None,
    ) -> str:
        """
        Trade an authorization code for an access token.

        Raises:
            NetworkError, ResponseParseError, EmptyTokenError
        """
        spec = self.adapter.build_token_request(
            TokenRequestInput(
                code=code,
                client_id=client_id,
                client_secret=client_secret,
                redirect_uri=redirect_uri,
            )
        )
        timeout = deadline.cap(self.timeout_seconds) if deadline else self.timeout_seconds
        resp = self.http.send(spec, timeout=timeout)
        access_token = self.adapter.parse_token_response(resp.text)
        if not access_token:
            raise EmptyTokenError(f"Provider returned no access token (status={resp.status_code})")
        return access_token


class ProfileFetcher:
    def __init__(self, adapter: ProviderAdapter, http: HttpClient, *, timeout_seconds: float = 10.0) -> None:
        self.adapter = adapter
        self.http = http
        self.timeout_seconds = timeout_seconds

    def fetch(self, access_token: str, *, deadline: Optional[Deadline] = None) -> ExternalProfile:
        """
        Fetch and normalize the remote profile.

        Raises:
            NetworkError, TokenRejectedError, ResponseParseError, InvalidProfileError
        """
        spec = self.adapter.build_profile_request(access_token)
        timeout = deadline.cap(self.timeout_seconds) if deadline else self.timeout_seconds
        resp = self.http.send(spec, timeout=timeout)
        if resp.status_code >= 400:
            # A 401/403 body carries no id; it must not be judged as a profile.
            raise TokenRejectedError(f"Profile endpoint rejected the access token (status={resp.status_code})")
        profile = self.adapter.parse_profile_response(resp.text)
        logger.debug("Fetched %s profile external_id=%d", self.adapter.name, profile.external_id)
        return profile
