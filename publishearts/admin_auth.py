"""Shared-secret admin access.

The admin password is sent in the ``X-Admin-Password`` header on every admin
request. Both sides are hashed to fixed-length digests before the
constant-time comparison, so neither length nor content leaks through timing.
"""

from __future__ import annotations

import hashlib
import hmac
from functools import wraps
from typing import Callable, Optional

from flask import current_app, request

from .errors import ServiceUnavailableError, UnauthorizedError

ADMIN_HEADER = "X-Admin-Password"


def _digest(value: str) -> bytes:
    return hashlib.sha256(value.encode("utf-8")).digest()


class AdminAuthorizer:
    def __init__(self, password: Optional[str]) -> None:
        self._expected = _digest(password) if password else None

    @property
    def configured(self) -> bool:
        return self._expected is not None

    def is_valid(self, candidate: Optional[str]) -> bool:
        if self._expected is None:
            return False
        return hmac.compare_digest(_digest(candidate or ""), self._expected)

    def check(self, candidate: Optional[str]) -> None:
        if not self.configured:
            raise ServiceUnavailableError("Admin is not configured. Set ADMIN_PASSWORD in your .env file.")
        if not self.is_valid(candidate):
            raise UnauthorizedError("Invalid admin password.")


def require_admin(view: Callable) -> Callable:
    """Reject the request unless the admin header matches the configured password."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        authorizer: AdminAuthorizer = current_app.extensions["publishearts"]["admin"]
        authorizer.check(request.headers.get(ADMIN_HEADER))
        return view(*args, **kwargs)

    return wrapper
