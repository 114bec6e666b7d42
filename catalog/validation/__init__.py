"""
Validation module for the movie catalog service.

This module provides field, operator, value and paging checks for list queries.
"""

from .rules import (
    coerce,
    parse_bool,
    _assert_filter_allowed,
    _assert_values_parse,
    _assert_sort_allowed,
    _parse_positive_int,
    _cap_page_size,
)

__all__ = [
    "coerce",
    "parse_bool",
    "_assert_filter_allowed",
    "_assert_values_parse",
    "_assert_sort_allowed",
    "_parse_positive_int",
    "_cap_page_size",
]
