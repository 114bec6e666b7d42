"""
Database connections for the movie catalog service.

This module provides DB-API connection factories (Snowflake, sqlite) and the
shared table layout.
"""

from .schema import DDL, create_schema
from .snowflake import (
    snowflake_connect_for,
    snowflake_integrity_errors,
    _sf_connect_for,
    _split_db_path,
)
from .sqlite import sqlite_connect_for

__all__ = [
    "DDL",
    "create_schema",
    "snowflake_connect_for",
    "snowflake_integrity_errors",
    "sqlite_connect_for",
    "_sf_connect_for",
    "_split_db_path",
]
