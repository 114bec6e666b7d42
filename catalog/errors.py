from __future__ import annotations
from typing import Optional


class CatalogError(Exception):
    """Base for errors the HTTP layer maps onto a client-facing status."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Malformed filter key/operator/value, bad pagination or vote value."""

    status_code = 422

    def __init__(self, message: str, *, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class NotFoundError(CatalogError):
    status_code = 404


class ConflictError(CatalogError):
    status_code = 409


__all__ = [
    "CatalogError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
]
