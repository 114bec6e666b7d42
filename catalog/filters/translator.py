"""
Query-string grammar for list endpoints.

Keys take the form ``field`` or ``field__operator``; ``page``, ``limit`` and
``order`` are reserved for paging. Example::

    GET /movies?name__contains=avenger&actors__in=robert,chris&page=3&limit=10

Every field and operator is checked against the entity's registry before a
predicate is emitted, so nothing unvetted reaches a storage compiler.
"""

from __future__ import annotations
from typing import Mapping, Optional, Sequence, Tuple, Union

from ..errors import ValidationError
from ..registry import EntityConfig
from ..validation.rules import (
    _assert_filter_allowed,
    _assert_sort_allowed,
    _assert_values_parse,
    _cap_page_size,
    _parse_positive_int,
)
from .models import (
    FilterExpression,
    MULTI_VALUE_OPERATORS,
    Operator,
    Pagination,
    SortKey,
    Translation,
    arity_ok,
)

RESERVED_KEYS = ("page", "limit", "order")
SEPARATOR = "__"
MAX_OFFSET = 2**63 - 1

RawQuery = Mapping[str, Union[str, Sequence[str]]]


def _as_values(raw: Union[None, str, Sequence[str]]) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes)):
        return (raw.decode() if isinstance(raw, bytes) else raw,)
    return tuple(str(v) for v in raw)


def _split_csv(values: Tuple[str, ...]) -> Tuple[str, ...]:
    """A single comma-delimited value expands; repeated keys are taken as-is."""
    if len(values) != 1:
        return values
    return tuple(s.strip() for s in values[0].split(",") if s.strip() != "")


def _single(key: str, values: Tuple[str, ...]) -> Optional[str]:
    if not values:
        return None
    if len(values) > 1:
        raise ValidationError(f"{key} may only be given once", key=key)
    return values[0]


def _parse_sort_item(item: str) -> SortKey:
    """
    Accepts:
      - '-name'  -> name DESC
      - '^name'  -> name ASC
      - 'name'   -> name ASC
    """
    s = item.strip()
    if s.startswith("-"):
        return SortKey(s[1:].strip(), descending=True)
    if s.startswith("^"):
        return SortKey(s[1:].strip())
    return SortKey(s)


class FilterTranslator:
    """Turns a flat query map into ordered predicates plus paging for one entity."""

    def __init__(self, entity: EntityConfig, *, separator: str = SEPARATOR):
        self.entity = entity
        self.separator = separator

    def translate(self, raw_query: RawQuery) -> Translation:
        query = {str(k): _as_values(v) for k, v in raw_query.items()}
        pagination = self._pagination(query)
        predicates = [
            self._expression(key, values)
            for key, values in query.items()
            if key not in RESERVED_KEYS
        ]
        return Translation(predicates, pagination)

    def _pagination(self, query: dict[str, Tuple[str, ...]]) -> Pagination:
        page = _parse_positive_int("page", _single("page", query.get("page", ())), 1)
        limit = _parse_positive_int(
            "limit", _single("limit", query.get("limit", ())), self.entity.default_page_size
        )
        order = []
        for raw in query.get("order", ()):
            for item in raw.split(","):
                if not item.strip():
                    continue
                key = _parse_sort_item(item)
                _assert_sort_allowed(self.entity, key.field)
                order.append(key)
        limit = _cap_page_size(self.entity, limit)
        if (page - 1) * limit > MAX_OFFSET:
            raise ValidationError(f"page {page} is out of range for limit {limit}", key="page")
        return Pagination(page=page, limit=limit, order=tuple(order))

    def _expression(self, key: str, values: Tuple[str, ...]) -> FilterExpression:
        parts = key.split(self.separator)
        if len(parts) > 2 or not all(parts):
            raise ValidationError(f"Malformed filter key: {key}", key=key)

        name = parts[0]
        token = parts[1] if len(parts) == 2 else Operator.EQ.value
        try:
            op = Operator.from_token(token)
        except ValueError:
            raise ValidationError(f"Unknown operator '{token}' in filter key: {key}", key=key) from None

        spec = self.entity.fields.get(name)
        if spec is None:
            raise ValidationError(f"Filter field not allowed for {self.entity.name}: {name}", key=key)

        if op in MULTI_VALUE_OPERATORS:
            values = _split_csv(values)
        if not arity_ok(op, len(values)):
            raise ValidationError(
                f"Operator {op.value} got {len(values)} value(s) for {key}", key=key
            )

        _assert_filter_allowed(self.entity, key, spec, op)
        _assert_values_parse(key, spec, op, values)
        return FilterExpression(field=name, operator=op, values=values)
