"""
Filter system for the movie catalog service.

This module provides the predicate and paging models; the query-string
grammar lives in ``catalog.filters.translator``.
"""

from .models import (
    Operator,
    FilterExpression,
    SortKey,
    Pagination,
    Translation,
)

__all__ = [
    "Operator",
    "FilterExpression",
    "SortKey",
    "Pagination",
    "Translation",
]
