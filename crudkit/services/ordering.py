from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from sqlalchemy import asc, desc
from sqlalchemy.sql.elements import ColumnElement

from crudkit.schemas.query import OrderSpec
from crudkit.services.schema import ResourceSchema

ORDER_QUERY_KEYS = ("order", "sort", "order_by", "orderBy")
DESC_KEYWORDS = {"desc", "descend", "descending"}

_TOKEN_SPLIT_RE = re.compile(r"[ :,]+")


def parse_order_token(raw: str) -> OrderSpec | None:
    parts = [part for part in _TOKEN_SPLIT_RE.split(str(raw or "").strip()) if part]
    if not parts:
        return None

    column = parts[0].strip()
    descending = False
    if column.startswith("-"):
        column = column[1:]
        descending = True
    elif column.startswith("+"):
        column = column[1:]
    if not column:
        return None

    if len(parts) > 1:
        # An explicit direction word overrides the sign prefix.
        descending = parts[1].strip().lower() in DESC_KEYWORDS

    return OrderSpec(column=column, desc=descending)


def parse_order_options(query: Mapping[str, str | Sequence[str]]) -> list[OrderSpec]:
    options: list[OrderSpec] = []
    for key in ORDER_QUERY_KEYS:
        entries = query.get(key)
        if entries is None:
            continue
        if isinstance(entries, str):
            entries = [entries]
        for raw in entries:
            spec = parse_order_token(raw)
            if spec is not None:
                options.append(spec)
    return options


def resolve_order(raw: Iterable[str | OrderSpec] | None, allowed: frozenset[str] | set[str]) -> list[OrderSpec]:
    if not raw or not allowed:
        return []
    if isinstance(raw, str):
        raw = [raw]

    resolved: list[OrderSpec] = []
    seen: set[str] = set()
    for item in raw:
        spec = item if isinstance(item, OrderSpec) else parse_order_token(item)
        if spec is None:
            continue
        column = spec.column.strip()
        if not column or column not in allowed or column in seen:
            continue
        seen.add(column)
        resolved.append(OrderSpec(column=column, desc=spec.desc))
    return resolved


def order_by_clauses(schema: ResourceSchema, specs: Sequence[OrderSpec]) -> list[ColumnElement]:
    clauses = []
    for spec in specs:
        info = schema.by_name.get(spec.column)
        if info is None:
            continue
        clauses.append(desc(info.column) if spec.desc else asc(info.column))
    if clauses:
        return clauses
    # No usable order: primary key ascending.
    return [asc(info.column) for info in schema.primary_keys]
