"""
Portal login API.

Two entry points drive the same login pipeline:
- POST /api/auth/login      JSON in, JSON out (SPA / mobile clients)
- GET  /api/auth/callback   provider redirect target; answers with a redirect to the frontend
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import jwt
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from portal.auth.config import AuthConfig, load_auth_config
from portal.auth.errors import SigningError
from portal.auth.login import (
    REASON_LOGIN_FAILED,
    REASON_MISSING_CODE,
    LoginOrchestrator,
    build_login_orchestrator,
    failure_redirect_url,
    success_redirect_url,
)
from portal.auth.models import LoginOutcome
from portal.auth.session import TokenIssuer
from portal.auth.util import Deadline, correlation_id
from portal.storage.user_store import get_user_store

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
INVALID_REQUEST_MESSAGE = "Invalid request. Please try again later."
LOGIN_FAILED_MESSAGE = "Login failed. Please try again later."

app = FastAPI(title="Portal login API")


@app.on_event("startup")
def _startup_maybe_apply_schema() -> None:
    """
    Optional: create the users/roles schema when DB_APPLY_SCHEMA=1.

    This should never prevent the API from starting; failures are logged and surface later
    as save_user_failed logins.
    """
    try:
        from portal.storage.schema import maybe_apply_schema

        applied, msg = maybe_apply_schema()
        if applied:
            logger.info("DB schema: %s", msg)
    except Exception as e:
        logger.warning("DB schema: startup apply failed: %s", str(e))

    cfg = load_auth_config()
    # Avoid logging secrets; provider/endpoints/frontend are fine.
    logger.info(
        "Auth config: provider=%s oauth_enabled=%s frontend_url=%s token_signing=%s",
        cfg.oauth_provider,
        cfg.oauth_enabled,
        cfg.frontend_url,
        bool(cfg.token_secret),
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Attach a correlation id and log every request."""
    start_time = time.time()
    request_id = correlation_id(request.headers.get(REQUEST_ID_HEADER))
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception(
            "%s %s - ERROR after %.3fs request_id=%s: %s",
            request.method,
            request.url.path,
            process_time,
            request_id,
            str(e),
        )
        raise
    process_time = time.time() - start_time
    response.headers[REQUEST_ID_HEADER] = request_id
    logger.debug(
        "%s %s - %d (%.3fs) request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        process_time,
        request_id,
    )
    return response


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or correlation_id(None)


def _login_orchestrator(cfg: AuthConfig) -> LoginOrchestrator:
    return build_login_orchestrator(cfg, get_user_store())


def _run_login(cfg: AuthConfig, code: str, request_id: str) -> Optional[LoginOutcome]:
    """Run the pipeline; None means the service itself is not configured for OAuth."""
    try:
        orchestrator = _login_orchestrator(cfg)
    except ValueError as e:
        logger.error("Login unavailable: request_id=%s error=%s", request_id, str(e))
        return None
    deadline = Deadline(cfg.login_timeout_seconds or None)
    return orchestrator.login(code, request_id=request_id, deadline=deadline)


def _json_error(status_code: int, message: str, reason: str) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content={"ok": False, "detail": message, "error": reason})
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _redirect(url: str) -> RedirectResponse:
    resp = RedirectResponse(url=url, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/api/auth/login")
async def auth_login(request: Request) -> JSONResponse:
    """Exchange an authorization code for a session token (JSON mode)."""
    request_id = _request_id(request)
    try:
        body = await request.json()
    except ValueError:
        body = None
    code = body.get("code") if isinstance(body, dict) else None
    if not isinstance(code, str) or not code.strip():
        logger.warning("Invalid login request: request_id=%s", request_id)
        return _json_error(400, INVALID_REQUEST_MESSAGE, REASON_MISSING_CODE)

    cfg = load_auth_config()
    # The pipeline blocks on requests/psycopg; keep it off the event loop.
    outcome = await run_in_threadpool(_run_login, cfg, code.strip(), request_id)
    if outcome is None:
        return _json_error(500, LOGIN_FAILED_MESSAGE, REASON_LOGIN_FAILED)
    if outcome.failure is not None:
        return _json_error(500, outcome.failure.message, outcome.failure.reason_code)

    result = outcome.result
    resp = JSONResponse(
        content={
            "ok": True,
            "user": result.user.to_public_dict(),
            "permissions": list(result.permissions),
            "token": result.token,
        }
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.get("/api/auth/callback")
def auth_callback(request: Request, code: Optional[str] = Query(None)) -> RedirectResponse:
    """Provider redirect target (browser mode): always answers with a redirect to the frontend."""
    cfg = load_auth_config()
    request_id = _request_id(request)

    code = (code or "").strip()
    if not code:
        logger.warning("Missing code parameter in OAuth callback: request_id=%s", request_id)
        return _redirect(failure_redirect_url(cfg.frontend_url, REASON_MISSING_CODE))

    outcome = _run_login(cfg, code, request_id)
    if outcome is None:
        return _redirect(failure_redirect_url(cfg.frontend_url, REASON_LOGIN_FAILED))
    if outcome.failure is not None:
        return _redirect(failure_redirect_url(cfg.frontend_url, outcome.failure.reason_code))
    return _redirect(success_redirect_url(cfg.frontend_url, outcome.result.token))


@app.get("/api/auth/me")
def auth_me(request: Request) -> JSONResponse:
    """Introspect the bearer session token."""
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})

    issuer = TokenIssuer.from_config(load_auth_config())
    try:
        claims = issuer.decode(token)
    except SigningError:
        return JSONResponse(status_code=500, content={"detail": "Session signing is not configured"})
    except jwt.InvalidTokenError as e:
        logger.info("Rejected session token: request_id=%s reason=%s", _request_id(request), type(e).__name__)
        return JSONResponse(status_code=401, content={"detail": "Unauthorized"})

    return JSONResponse(
        content={
            "ok": True,
            "user": {
                "id": claims.get("sub"),
                "email": claims.get("email"),
                "username": claims.get("username"),
                "avatarUrl": claims.get("avatar_url"),
                "profileUrl": claims.get("profile_url"),
            },
            "permissions": list(claims.get("permissions") or []),
            "expiresAt": claims.get("exp"),
        }
    )


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting login API on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
