"""
Session tokens for the movie catalog service.

This module handles JWT access token creation and validation.
"""

from .jwt import (
    issue_access_token,
    verify_access,
)

__all__ = [
    "issue_access_token",
    "verify_access",
]
