"""
Login orchestration.

Start -> CodeExchanged -> ProfileFetched -> UserReconciled -> PermissionsResolved -> TokenIssued
or Failed(stage) at the first error. No retries, no re-entry.

A failure after the user row was written (resolve/issue) leaves the row as is; the next
login with a fresh code reconciles it again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

from portal.auth.config import AuthConfig
from portal.auth.errors import LoginError
from portal.auth.http import HttpClient
from portal.auth.models import LoginFailure, LoginOutcome, LoginResult
from portal.auth.oauth import OAuthCodeExchanger, ProfileFetcher
from portal.auth.providers import get_provider_adapter
from portal.auth.reconcile import UserReconciler
from portal.auth.session import TokenIssuer
from portal.auth.util import Deadline, random_token
from portal.authz.permissions import PermissionResolver
from portal.storage.user_store import UserStore

logger = logging.getLogger(__name__)

STAGE_EXCHANGE = "exchange"
STAGE_FETCH = "fetch"
STAGE_RECONCILE = "reconcile"
STAGE_RESOLVE = "resolve"
STAGE_ISSUE = "issue"

# Redirect-mode reason codes.
REASON_MISSING_CODE = "missing_code"
REASON_INVALID_TOKEN = "invalid_token"
REASON_LOGIN_FAILED = "login_failed"
REASON_INVALID_USER = "invalid_user"
REASON_SAVE_USER_FAILED = "save_user_failed"
REASON_PERMISSIONS_FAILED = "permissions_failed"
REASON_TOKEN_FAILED = "token_failed"

_STAGE_REASONS = {
    STAGE_RECONCILE: REASON_SAVE_USER_FAILED,
    STAGE_RESOLVE: REASON_PERMISSIONS_FAILED,
    STAGE_ISSUE: REASON_TOKEN_FAILED,
}


def reason_code_for(stage: str, kind: str) -> str:
    if kind == "cancelled":
        return REASON_LOGIN_FAILED
    if stage == STAGE_EXCHANGE and kind == "empty_token":
        return REASON_INVALID_TOKEN
    if stage == STAGE_FETCH and kind == "invalid_profile":
        return REASON_INVALID_USER
    return _STAGE_REASONS.get(stage, REASON_LOGIN_FAILED)


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str
    redirect_uri: Optional[str] = None


class LoginOrchestrator:
    def __init__(
        self,
        *,
        credentials: ClientCredentials,
        exchanger: OAuthCodeExchanger,
        fetcher: ProfileFetcher,
        reconciler: UserReconciler,
        resolver: PermissionResolver,
        issuer: TokenIssuer,
    ) -> None:
        self.credentials = credentials
        self.exchanger = exchanger
        self.fetcher = fetcher
        self.reconciler = reconciler
        self.resolver = resolver
        self.issuer = issuer

    def login(self, code: str, *, request_id: Optional[str] = None, deadline: Optional[Deadline] = None) -> LoginOutcome:
        """
        Run the pipeline for one authorization code. Never raises for pipeline failures;
        they come back as `LoginOutcome.failure`.
        """
        code = (code or "").strip()
        if not code:
            raise ValueError("authorization code is required")
        request_id = request_id or random_token(12)
        deadline = deadline or Deadline()
        creds = self.credentials

        stage = STAGE_EXCHANGE
        try:
            deadline.check()
            access_token = self.exchanger.exchange(
                code,
                creds.client_id,
                creds.client_secret,
                creds.redirect_uri,
                deadline=deadline,
            )

            stage = STAGE_FETCH
            deadline.check()
            profile = self.fetcher.fetch(access_token, deadline=deadline)

            stage = STAGE_RECONCILE
            deadline.check()
            user = self.reconciler.reconcile(profile)

            stage = STAGE_RESOLVE
            deadline.check()
            permissions = self.resolver.resolve(user.internal_id)

            stage = STAGE_ISSUE
            deadline.check()
            token = self.issuer.issue(user, permissions)
        except LoginError as e:
            return self._failed(request_id, stage, e.kind, e)
        except Exception as e:
            logger.exception("Login stage raised unexpectedly: request_id=%s stage=%s", request_id, stage)
            return self._failed(request_id, stage, "unexpected", e)

        logger.info(
            "Login succeeded: request_id=%s internal_id=%s permissions=%d",
            request_id,
            user.internal_id,
            len(permissions),
        )
        return LoginOutcome(result=LoginResult(user=user, permissions=permissions, token=token))

    def _failed(self, request_id: str, stage: str, kind: str, err: Exception) -> LoginOutcome:
        reason = reason_code_for(stage, kind)
        cause = err.__cause__
        logger.warning(
            "Login failed: request_id=%s stage=%s kind=%s reason=%s error=%s cause=%s",
            request_id,
            stage,
            kind,
            reason,
            str(err),
            type(cause).__name__ if cause is not None else None,
        )
        return LoginOutcome(failure=LoginFailure(stage=stage, kind=kind, reason_code=reason))


def build_login_orchestrator(
    cfg: AuthConfig,
    store: UserStore,
    *,
    http: Optional[HttpClient] = None,
) -> LoginOrchestrator:
    """
    Wire the pipeline from configuration.

    Raises:
        ValueError if the identity provider is not configured
    """
    if not cfg.oauth_enabled:
        raise ValueError("OAuth login is not configured (OAUTH_CLIENT_ID/OAUTH_CLIENT_SECRET/endpoints)")
    adapter = get_provider_adapter(cfg)
    http = http or HttpClient()
    return LoginOrchestrator(
        credentials=ClientCredentials(
            client_id=cfg.oauth_client_id or "",
            client_secret=cfg.oauth_client_secret or "",
            redirect_uri=cfg.oauth_redirect_uri,
        ),
        exchanger=OAuthCodeExchanger(adapter, http, timeout_seconds=cfg.http_timeout_seconds),
        fetcher=ProfileFetcher(adapter, http, timeout_seconds=cfg.http_timeout_seconds),
        reconciler=UserReconciler(store),
        resolver=PermissionResolver(store),
        issuer=TokenIssuer.from_config(cfg),
    )


def success_redirect_url(frontend_url: str, token: str) -> str:
    return f"{frontend_url.rstrip('/')}/?{urlencode({'token': token})}"


def failure_redirect_url(frontend_url: str, reason_code: str) -> str:
    return f"{frontend_url.rstrip('/')}/login?{urlencode({'error': reason_code})}"
