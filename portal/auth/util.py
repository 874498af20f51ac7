from __future__ import annotations

import base64
import os
import re
import threading
import time
from typing import Optional

from portal.auth.errors import LoginCancelled

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def correlation_id(header_value: str | None) -> str:
    """
    Reuse a caller-supplied request id when it is safe to echo and log; otherwise mint one.
    """
    v = (header_value or "").strip()
    if v and _REQUEST_ID_RE.match(v):
        return v
    return random_token(12)


class Deadline:
    """
    Caller-supplied cancellation for one login attempt.

    The pipeline calls `check()` between stages; outbound calls cap their timeout with
    `cap()` so a slow provider cannot outlive the deadline by more than one call.
    """

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self._expires_at = (time.monotonic() + timeout_seconds) if timeout_seconds else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        if self.cancelled:
            return True
        rem = self.remaining()
        return rem is not None and rem <= 0.0

    def check(self) -> None:
        if self.cancelled:
            raise LoginCancelled("Login cancelled by caller")
        if self.expired():
            raise LoginCancelled("Login deadline exceeded")

    def cap(self, timeout: float) -> float:
        rem = self.remaining()
        if rem is None:
            return timeout
        # urllib3 rejects a timeout <= 0 with ValueError; keep a tiny floor so the call fails as a timeout.
        return max(0.001, min(timeout, rem))
