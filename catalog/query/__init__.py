"""
Query compilation for the movie catalog service.

One compiler per storage backend turns translated predicates into
parametrized SQL or in-process callables.
"""

from .builder import (
    build_where_clause_and_params,
    build_select,
    SelectBuildResult,
)
from .memory import compile_predicates, order_records, page

__all__ = [
    "build_where_clause_and_params",
    "build_select",
    "SelectBuildResult",
    "compile_predicates",
    "order_records",
    "page",
]
