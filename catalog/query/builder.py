from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import re

from ..filters.models import (
    FilterExpression,
    NEGATED_OPERATORS,
    Operator,
    PATTERN_OPERATORS,
    Pagination,
)
from ..registry import EntityConfig, FieldSpec
from ..validation.rules import coerce, parse_bool

BASE_ALIAS = "m"
RELATION_ALIAS = "r"
LIKE_ESCAPE = "!"

_UNQUOTED_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")

def _quote_identifier(name: str, *, quote_identifiers: bool) -> str:
    """
    Quote an identifier if needed. Doubles internal quotes.
    """
    if not quote_identifiers and _UNQUOTED_IDENT_RE.match(name):
        return name
    doubled = name.replace('"', '""')
    return f'"{doubled}"'

def _escape_like(value: str) -> str:
    """
    Escape the escape char, %, _ in LIKE patterns. We'll use ESCAPE '!' in SQL.
    """
    value = value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
    value = value.replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")
    return value

class _ParamSink:
    """
    Collects params and returns the correct placeholder per paramstyle.
      - 'qmark'    -> ?, params is a list
      - 'pyformat' -> %(p1)s, params is a dict
    """
    def __init__(self, paramstyle: str = "qmark"):
        if paramstyle not in {"qmark", "pyformat"}:
            raise ValueError("paramstyle must be 'qmark' or 'pyformat'")
        self.paramstyle = paramstyle
        self.next_idx = 1
        self.params_list: List[Any] = []
        self.params_dict: Dict[str, Any] = {}

    def add(self, value: Any) -> str:
        if self.paramstyle == "qmark":
            self.params_list.append(value)
            return "?"
        else:
            name = f"p{self.next_idx}"
            self.next_idx += 1
            self.params_dict[name] = value
            return f"%({name})s"

    def bundle(self) -> Union[List[Any], Dict[str, Any]]:
        return self.params_list if self.paramstyle == "qmark" else self.params_dict

def _format_like_pattern(val: str, op: Operator) -> str:
    lit = _escape_like(str(val).lower())
    if op == Operator.CONTAINS:
        return f"%{lit}%"
    if op == Operator.STARTSWITH:
        return f"{lit}%"
    if op == Operator.ENDSWITH:
        return f"%{lit}"
    raise AssertionError("LIKE pattern requested for non-like operator")

def _bind_value(spec: FieldSpec, raw: str) -> Any:
    """
    DB-API friendly parameter: ints/floats for numbers, ISO strings for dates.
    """
    value = coerce(spec.type, raw)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value

def _column_sql(spec: FieldSpec, alias: str, *, quote_identifiers: bool) -> str:
    if spec.expression:
        return spec.expression  # trusted registry SQL
    return f"{alias}.{_quote_identifier(spec.column, quote_identifiers=quote_identifiers)}"

def _compare_sql(
    col: str,
    e: FilterExpression,
    spec: FieldSpec,
    sink: _ParamSink,
    *,
    use_ilike: bool,
) -> str:
    op = e.operator

    # LIKE / ILIKE family, case-insensitive either way
    if op in PATTERN_OPERATORS:
        ph = sink.add(_format_like_pattern(e.value, op))
        if use_ilike:
            return f"{col} ILIKE {ph} ESCAPE '{LIKE_ESCAPE}'"
        return f"LOWER({col}) LIKE {ph} ESCAPE '{LIKE_ESCAPE}'"

    if op in (Operator.IN, Operator.NOTIN):
        phs = ", ".join(sink.add(_bind_value(spec, v)) for v in e.values)
        neg = "NOT " if op == Operator.NOTIN else ""
        return f"{col} {neg}IN ({phs})"

    if op == Operator.BETWEEN:
        lo = sink.add(_bind_value(spec, e.values[0]))
        hi = sink.add(_bind_value(spec, e.values[1]))
        return f"{col} BETWEEN {lo} AND {hi}"

    if op == Operator.ISNULL:
        return f"{col} IS NULL" if parse_bool(e.value) else f"{col} IS NOT NULL"

    # Scalar compares
    rhs = sink.add(_bind_value(spec, e.value))
    if op == Operator.EQ:  return f"{col} = {rhs}"
    if op == Operator.NE:  return f"{col} <> {rhs}"
    if op == Operator.GT:  return f"{col} > {rhs}"
    if op == Operator.GTE: return f"{col} >= {rhs}"
    if op == Operator.LT:  return f"{col} < {rhs}"
    if op == Operator.LTE: return f"{col} <= {rhs}"

    raise ValueError(f"Unsupported operator: {op}")

def _build_expr_sql(
    e: FilterExpression,
    spec: FieldSpec,
    sink: _ParamSink,
    *,
    key_column: str,
    use_ilike: bool,
    quote_identifiers: bool,
) -> str:
    q = lambda name: _quote_identifier(name, quote_identifiers=quote_identifiers)

    if spec.relation is None:
        col = _column_sql(spec, BASE_ALIAS, quote_identifiers=quote_identifiers)
        return _compare_sql(col, e, spec, sink, use_ilike=use_ilike)

    # Related rows: correlated EXISTS; a movie matches when any related row does
    rel = spec.relation
    col = _column_sql(spec, RELATION_ALIAS, quote_identifiers=quote_identifiers)
    head = (
        f"EXISTS (SELECT 1 FROM {q(rel.table)} {RELATION_ALIAS} "
        f"WHERE {RELATION_ALIAS}.{q(rel.key)} = {BASE_ALIAS}.{q(key_column)}"
    )

    if e.operator == Operator.ISNULL:
        present = f"{head} AND {col} IS NOT NULL)"
        return f"NOT {present}" if parse_bool(e.value) else present

    if e.operator in NEGATED_OPERATORS:
        positive = Operator.EQ if e.operator == Operator.NE else Operator.IN
        inner = _compare_sql(col, FilterExpression(e.field, positive, e.values), spec, sink, use_ilike=use_ilike)
        return f"NOT {head} AND {inner})"

    inner = _compare_sql(col, e, spec, sink, use_ilike=use_ilike)
    return f"{head} AND {inner})"

def build_where_clause_and_params(
    entity: EntityConfig,
    predicates: Sequence[FilterExpression],
    *,
    paramstyle: str = "qmark",        # 'qmark' -> ?,  'pyformat' -> %(p1)s
    use_ilike: bool = False,
    quote_identifiers: bool = False,
    key_column: str = "id",
) -> Tuple[str, Union[List[Any], Dict[str, Any]]]:
    """
    Returns (where_sql, params) with every predicate ANDed in input order.
    An empty predicate list yields an empty where_sql.
    """
    sink = _ParamSink(paramstyle)
    parts = [
        _build_expr_sql(
            e,
            entity.field(e.field),
            sink,
            key_column=key_column,
            use_ilike=use_ilike,
            quote_identifiers=quote_identifiers,
        )
        for e in predicates
    ]
    if not parts:
        return "", sink.bundle()
    body = " AND ".join(f"({p})" for p in parts) if len(parts) > 1 else parts[0]
    return f"WHERE {body}", sink.bundle()

# -----------------------------------------------------------------------------
# SELECT builder
# -----------------------------------------------------------------------------
def _normalize_columns(columns: Iterable[str], *, quote_identifiers: bool) -> str:
    cols = [c.strip() for c in (columns or []) if c.strip()]
    if not cols:
        return f"{BASE_ALIAS}.*"
    return ", ".join(
        f"{BASE_ALIAS}.{_quote_identifier(c, quote_identifiers=quote_identifiers)}" for c in cols
    )

def _build_order_by(
    entity: EntityConfig,
    pagination: Optional[Pagination],
    tiebreak: Iterable[str],
    *,
    quote_identifiers: bool,
) -> str:
    rendered: List[str] = []
    seen = set()
    for key in (pagination.order if pagination else ()):
        spec = entity.field(key.field)
        rendered.append(
            f"{_column_sql(spec, BASE_ALIAS, quote_identifiers=quote_identifiers)} "
            f"{'DESC' if key.descending else 'ASC'}"
        )
        seen.add(spec.column)
    for col in tiebreak:
        if col not in seen:
            rendered.append(f"{BASE_ALIAS}.{_quote_identifier(col, quote_identifiers=quote_identifiers)} ASC")
    if not rendered:
        return ""
    return "ORDER BY " + ", ".join(rendered)

@dataclass
class SelectBuildResult:
    sql: str
    params: Union[List[Any], Dict[str, Any]]
    count_sql: Optional[str] = None
    count_params: Optional[Union[List[Any], Dict[str, Any]]] = None

def build_select(
    entity: EntityConfig,
    predicates: Sequence[FilterExpression],
    pagination: Optional[Pagination] = None,
    *,
    columns: Iterable[str] = (),
    paramstyle: str = "qmark",
    use_ilike: bool = False,
    quote_identifiers: bool = False,
    key_column: str = "id",
    tiebreak: Iterable[str] = (),
    include_count: bool = False,
) -> SelectBuildResult:
    """
    Build a parametrized SELECT over the entity table.
    - WHERE from predicates (related fields become correlated EXISTS)
    - ORDER BY from pagination.order, then `tiebreak` columns for stable paging
    - LIMIT/OFFSET from pagination (page is 1-based)
    """
    table = _quote_identifier(entity.table, quote_identifiers=quote_identifiers)
    select_list = _normalize_columns(columns, quote_identifiers=quote_identifiers)
    opts = dict(
        paramstyle=paramstyle,
        use_ilike=use_ilike,
        quote_identifiers=quote_identifiers,
        key_column=key_column,
    )

    where_clause, params = build_where_clause_and_params(entity, predicates, **opts)
    order_clause = _build_order_by(entity, pagination, tiebreak, quote_identifiers=quote_identifiers)

    sql = f"SELECT {select_list} FROM {table} {BASE_ALIAS}"
    if where_clause:
        sql += f" {where_clause}"
    if order_clause:
        sql += f" {order_clause}"
    if pagination is not None:
        sql += f" LIMIT {int(pagination.limit)} OFFSET {int(pagination.offset)}"

    # Optional COUNT(*) mirror
    count_sql = None
    count_params = None
    if include_count:
        where_only, count_params = build_where_clause_and_params(entity, predicates, **opts)
        count_sql = f"SELECT COUNT(*) FROM {table} {BASE_ALIAS}"
        if where_only:
            count_sql += f" {where_only}"

    return SelectBuildResult(sql=sql, params=params, count_sql=count_sql, count_params=count_params)

# -----------------------------------------------------------------------------
# Public exports
# -----------------------------------------------------------------------------
__all__ = [
    "build_where_clause_and_params",
    "build_select",
    "SelectBuildResult",
]
