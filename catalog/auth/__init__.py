"""
Authentication module for the movie catalog service.

This module gates routes on a verified bearer token and its role claims.
"""

from .require import (
    require_auth,
    require_roles_access,
)

__all__ = [
    "require_auth",
    "require_roles_access",
]
