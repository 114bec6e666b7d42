"""
In-process predicate compiler.

Mirrors the SQL builder's semantics over plain Python objects so the
in-memory repository and a SQL backend answer the same query identically.
"""

from __future__ import annotations
import datetime as dt
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Mapping, Sequence, Tuple

from ..filters.models import (
    FilterExpression,
    NEGATED_OPERATORS,
    Operator,
    PATTERN_OPERATORS,
    Pagination,
)
from ..registry import EntityConfig, FieldSpec
from ..validation.rules import coerce, parse_bool

Predicate = Callable[[Any], bool]


def _resolve(obj: Any, path: Tuple[str, ...]) -> Any:
    for part in path:
        if obj is None:
            return None
        obj = obj.get(part) if isinstance(obj, Mapping) else getattr(obj, part, None)
    return obj


def _related_values(spec: FieldSpec, record: Any) -> List[Any]:
    value = _resolve(record, spec.path)
    if spec.many:
        return [v for v in (value or ()) if v is not None]
    return [] if value is None else [value]


def _normalize(spec: FieldSpec, stored: Any) -> Any:
    if spec.type == "NUMBER":
        return stored if isinstance(stored, Decimal) else Decimal(str(stored))
    if spec.type == "TIMESTAMP" and isinstance(stored, dt.datetime) and stored.tzinfo is None:
        return stored.replace(tzinfo=dt.timezone.utc)
    if spec.type == "TEXT":
        return str(stored)
    return stored


def _match(op: Operator, spec: FieldSpec, stored: Any, operands: Tuple[Any, ...]) -> bool:
    if stored is None:
        return False

    if op in PATTERN_OPERATORS:
        s, needle = str(stored).lower(), str(operands[0]).lower()
        if op == Operator.CONTAINS:
            return needle in s
        if op == Operator.STARTSWITH:
            return s.startswith(needle)
        return s.endswith(needle)

    v = _normalize(spec, stored)
    if op == Operator.EQ:      return v == operands[0]
    if op == Operator.NE:      return v != operands[0]
    if op == Operator.IN:      return v in operands
    if op == Operator.NOTIN:   return v not in operands
    if op == Operator.GT:      return v > operands[0]
    if op == Operator.GTE:     return v >= operands[0]
    if op == Operator.LT:      return v < operands[0]
    if op == Operator.LTE:     return v <= operands[0]
    if op == Operator.BETWEEN: return operands[0] <= v <= operands[1]

    raise ValueError(f"Unsupported operator: {op}")


def compile_predicate(entity: EntityConfig, e: FilterExpression) -> Predicate:
    spec = entity.field(e.field)
    op = e.operator

    if op == Operator.ISNULL:
        want_null = parse_bool(e.value)
        return lambda record: (not _related_values(spec, record)) == want_null

    if op in PATTERN_OPERATORS:
        operands: Tuple[Any, ...] = e.values
    else:
        operands = tuple(coerce(spec.type, v) for v in e.values)

    if spec.relation is None:
        return lambda record: _match(op, spec, _resolve(record, spec.path), operands)

    if op in NEGATED_OPERATORS:
        positive = Operator.EQ if op == Operator.NE else Operator.IN
        return lambda record: not any(
            _match(positive, spec, v, operands) for v in _related_values(spec, record)
        )
    return lambda record: any(_match(op, spec, v, operands) for v in _related_values(spec, record))


def compile_predicates(entity: EntityConfig, predicates: Sequence[FilterExpression]) -> Predicate:
    compiled = [compile_predicate(entity, e) for e in predicates]
    return lambda record: all(p(record) for p in compiled)


def _sort_value(value: Any) -> Tuple[bool, Any]:
    return (value is None, value if value is not None else 0)


def order_records(
    entity: EntityConfig,
    records: Iterable[Any],
    pagination: Pagination,
    tiebreak: Sequence[str] = (),
) -> List[Any]:
    out = list(records)
    for name in reversed(tiebreak):
        out.sort(key=lambda r: _sort_value(_resolve(r, (name,))))
    for key in reversed(pagination.order):
        spec = entity.field(key.field)
        out.sort(key=lambda r: _sort_value(_resolve(r, spec.path)), reverse=key.descending)
    return out


def page(records: Sequence[Any], pagination: Pagination) -> List[Any]:
    start = pagination.offset
    return list(records[start:start + pagination.limit])
