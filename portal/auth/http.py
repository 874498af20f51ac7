from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from portal.auth.errors import NetworkError
from portal.auth.providers import HttpRequestSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    text: str


class HttpClient:
    """
    Thin outbound HTTP client over `requests`.

    Only transport-level problems are decided here (connection errors, timeouts, 5xx).
    4xx bodies are handed back so the adapter can tell "bad code" from "garbage".
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session

    def send(self, spec: HttpRequestSpec, *, timeout: float) -> HttpResponse:
        kwargs = {
            "headers": dict(spec.headers),
            "timeout": timeout,
        }
        if spec.json_body is not None:
            kwargs["json"] = dict(spec.json_body)
        if spec.form_body is not None:
            kwargs["data"] = dict(spec.form_body)
        if spec.basic_auth is not None:
            kwargs["auth"] = spec.basic_auth

        send = self._session.request if self._session is not None else requests.request
        try:
            r = send(spec.method, spec.url, **kwargs)
        except requests.Timeout as e:
            raise NetworkError(f"Timed out calling {spec.describe()}") from e
        except requests.RequestException as e:
            raise NetworkError(f"Request failed: {spec.describe()}") from e

        logger.debug("%s -> %d", spec.describe(), r.status_code)
        if r.status_code >= 500:
            # Avoid leaking provider bodies; status is enough context.
            raise NetworkError(f"Provider unavailable (status={r.status_code}) for {spec.describe()}")
        return HttpResponse(status_code=r.status_code, text=r.text or "")
