"""
Storage backends for the movie catalog service.

This module provides the repository protocol and its in-memory and DB-API
implementations.
"""

from .base import Repository
from .memory import InMemoryMovieRepository
from .sql import SqlMovieRepository

__all__ = [
    "Repository",
    "InMemoryMovieRepository",
    "SqlMovieRepository",
]
