"""Error kinds shared by the stores, the checkout engine and the HTTP layer.

Every error raised by the core is a ``ShopError`` tagged with a ``kind`` so
callers can branch on ``err.kind`` instead of on the exception class. The
``message`` is always safe to show to the client; ``detail`` is for the logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    UNAVAILABLE = "unavailable"
    UPSTREAM = "upstream"
    INTEGRITY = "integrity"


class ShopError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION
    status: int = 400

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        return self.message


class ValidationError(ShopError):
    kind = ErrorKind.VALIDATION
    status = 400


class NotFoundError(ShopError):
    kind = ErrorKind.NOT_FOUND
    status = 404


class UnauthorizedError(ShopError):
    kind = ErrorKind.UNAUTHORIZED
    status = 401


class ServiceUnavailableError(ShopError):
    kind = ErrorKind.UNAVAILABLE
    status = 503


class UpstreamError(ShopError):
    """Payment or mail backend failure. ``detail`` holds the provider message."""

    kind = ErrorKind.UPSTREAM
    status = 502


class StoreIntegrityError(ShopError):
    """A data file on disk is unreadable or violates the store invariants."""

    kind = ErrorKind.INTEGRITY
    status = 500
