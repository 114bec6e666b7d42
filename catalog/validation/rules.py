from __future__ import annotations
import datetime as dt
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..errors import ValidationError
from ..filters.models import Operator, ORDERING_OPERATORS, PATTERN_OPERATORS
from ..registry import EntityConfig, FieldSpec

_TEXTY = {"TEXT"}
_NUMERIC = {"NUMBER"}
_DATES = {"DATE", "TIMESTAMP"}
_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def parse_bool(raw: str) -> bool:
    s = str(raw).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def coerce(typ: str, raw: str) -> Any:
    """
    Convert a wire value to the Python type of a registry field type.
    Raises ValueError when the value does not parse.
    """
    if typ in _NUMERIC:
        try:
            number = Decimal(str(raw).strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {raw!r}") from None
        if not number.is_finite():
            raise ValueError(f"not a finite number: {raw!r}")
        return number
    if typ == "DATE":
        return dt.date.fromisoformat(str(raw).strip())
    if typ == "TIMESTAMP":
        value = dt.datetime.fromisoformat(str(raw).strip())
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value.astimezone(dt.timezone.utc)
    if typ == "BOOLEAN":
        return parse_bool(raw)
    return str(raw)


def _assert_filter_allowed(entity: EntityConfig, key: str, spec: FieldSpec, op: Operator) -> None:
    if op in PATTERN_OPERATORS and spec.type not in _TEXTY:
        raise ValidationError(
            f"Operator {op.value} not allowed on non-text field {spec.name} of {entity.name}",
            key=key,
        )
    if op in ORDERING_OPERATORS and spec.type not in (_NUMERIC | _DATES):
        raise ValidationError(
            f"Operator {op.value} not allowed on field {spec.name} of type {spec.type}",
            key=key,
        )


def _assert_values_parse(key: str, spec: FieldSpec, op: Operator, values: tuple[str, ...]) -> None:
    for v in values:
        try:
            if op == Operator.ISNULL:
                parse_bool(v)
            elif op not in PATTERN_OPERATORS:
                coerce(spec.type, v)
        except ValueError as e:
            raise ValidationError(f"Invalid value for {key}: {e}", key=key) from None


def _assert_sort_allowed(entity: EntityConfig, name: str) -> FieldSpec:
    spec = entity.fields.get(name)
    if spec is None or not spec.sortable:
        raise ValidationError(f"Sort field not allowed for {entity.name}: {name}", key="order")
    return spec


def _parse_positive_int(key: str, raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    s = str(raw).strip()
    if not (s.isascii() and s.isdigit()):
        raise ValidationError(f"{key} must be a positive integer, got {raw!r}", key=key)
    n = int(s)
    if n < 1:
        raise ValidationError(f"{key} must be >= 1, got {n}", key=key)
    return n


def _cap_page_size(entity: EntityConfig, limit: int) -> int:
    return min(limit, entity.max_page_size)
