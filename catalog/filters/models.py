from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Tuple

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Operator(str, Enum):
    EQ = "eq"
    NE = "ne"
    CONTAINS = "contains"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"
    IN = "in"
    NOTIN = "notin"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    ISNULL = "isnull"

    @classmethod
    def from_token(cls, token: str) -> "Operator":
        return cls(token.lower())


PATTERN_OPERATORS = frozenset({Operator.CONTAINS, Operator.STARTSWITH, Operator.ENDSWITH})
ORDERING_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE, Operator.BETWEEN})
MULTI_VALUE_OPERATORS = frozenset({Operator.IN, Operator.NOTIN, Operator.BETWEEN})
NEGATED_OPERATORS = frozenset({Operator.NE, Operator.NOTIN})


def arity_ok(op: Operator, count: int) -> bool:
    if op in (Operator.IN, Operator.NOTIN):
        return count >= 1
    if op == Operator.BETWEEN:
        return count == 2
    return count == 1


# ---------------------------------------------------------------------------
# Core filter models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterExpression:
    """
    Basic component of a filter: a field path, an operator, and its operand values.
    """
    field: str
    operator: Operator = Operator.EQ
    values: Tuple[str, ...] = ()

    @property
    def value(self) -> str:
        return self.values[0]


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 20
    order: Tuple[SortKey, ...] = field(default_factory=tuple)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Translation(NamedTuple):
    predicates: List[FilterExpression]
    pagination: Pagination


__all__ = [
    "Operator",
    "PATTERN_OPERATORS",
    "ORDERING_OPERATORS",
    "MULTI_VALUE_OPERATORS",
    "NEGATED_OPERATORS",
    "arity_ok",
    "FilterExpression",
    "SortKey",
    "Pagination",
    "Translation",
]
