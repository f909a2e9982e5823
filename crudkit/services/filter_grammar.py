"""Query-string filter grammar.

Keys take the form ``<column>__<operator>``. The operator suffix is the text
after the last ``__`` found strictly inside the key and is matched
case-insensitively against ``FILTER_OP_ALIASES``. A key without a recognised
suffix is a plain column name compared with ``eq``, so columns whose names
contain ``__`` keep working.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from crudkit.schemas.query import FilterClause, FilterOp

OPERATOR_SEPARATOR = "__"

RESERVED_QUERY_KEYS = ("page", "size", "order", "sort", "order_by", "orderBy")

FILTER_OP_ALIASES: dict[str, FilterOp] = {
    "eq": "eq",
    "=": "eq",
    "ne": "ne",
    "neq": "ne",
    "!=": "ne",
    "<>": "ne",
    "gt": "gt",
    ">": "gt",
    "gte": "gte",
    "ge": "gte",
    ">=": "gte",
    "lt": "lt",
    "<": "lt",
    "lte": "lte",
    "le": "lte",
    "<=": "lte",
    "like": "like",
    "contains": "like",
    "contain": "like",
    "in": "in",
    "nin": "nin",
    "notin": "nin",
    "not_in": "nin",
    "between": "between",
    "range": "between",
    "isnull": "isnull",
    "null": "isnull",
    "notnull": "notnull",
    "not_null": "notnull",
    "isnotnull": "notnull",
}

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off"}


def normalize_filter_op(raw: str) -> FilterOp | None:
    return FILTER_OP_ALIASES.get(str(raw or "").strip().lower())


def parse_filter_key(key: str) -> tuple[str, FilterOp]:
    trimmed = str(key or "").strip()
    if not trimmed:
        return "", "eq"

    idx = trimmed.rfind(OPERATOR_SEPARATOR)
    if 0 < idx < len(trimmed) - len(OPERATOR_SEPARATOR):
        op = normalize_filter_op(trimmed[idx + len(OPERATOR_SEPARATOR):])
        if op is not None:
            return trimmed[:idx], op

    return trimmed, "eq"


def normalize_filter_values(values: Iterable[str] | None) -> list[str]:
    result: list[str] = []
    for raw in values or ():
        text = str(raw).strip()
        if text:
            result.append(text)
    return result


def split_comma_values(values: Iterable[str] | None) -> list[str]:
    result: list[str] = []
    for raw in values or ():
        for part in str(raw).split(","):
            text = part.strip()
            if text:
                result.append(text)
    return result


def parse_bool_value(raw: str | None) -> bool | None:
    text = str(raw or "").strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


def _as_list(values: str | Sequence[str] | None) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return list(values)


def parse_filters(filters: Mapping[str, str | Sequence[str]] | None) -> list[FilterClause]:
    clauses: list[FilterClause] = []
    for key, raw_values in (filters or {}).items():
        column, op = parse_filter_key(key)
        if not column:
            continue
        clauses.append(FilterClause(column=column, op=op, values=normalize_filter_values(_as_list(raw_values))))
    return clauses


def extract_filters(query: Mapping[str, str | Sequence[str]]) -> dict[str, list[str]]:
    """Collect filter entries from decoded query parameters, skipping reserved keys."""
    filters: dict[str, list[str]] = {}
    for key, raw_values in query.items():
        if key in RESERVED_QUERY_KEYS:
            continue
        cleaned = [value for value in _as_list(raw_values) if str(value).strip()]
        if cleaned:
            filters[key] = cleaned
    return filters
