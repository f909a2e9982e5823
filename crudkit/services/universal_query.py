from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Column, String, cast
from sqlalchemy.orm import Query
from sqlalchemy.sql.elements import ColumnElement

from crudkit.schemas.query import FilterClause
from crudkit.services.filter_grammar import parse_bool_value, split_comma_values
from crudkit.services.schema import ResourceSchema, column_python_type

_LOG = logging.getLogger("crudkit.query")

LIKE_WILDCARDS = ("%", "_")


class FilterValueError(ValueError):
    def __init__(self, column_key: str, kind: str):
        super().__init__(f'invalid {kind} value for "{column_key}"')
        self.column_key = column_key
        self.kind = kind


def _coerce_bool_filter_value(column_key: str, value):
    if isinstance(value, bool):
        return value
    parsed = parse_bool_value(value)
    if parsed is None:
        raise FilterValueError(column_key, "boolean")
    return parsed


def _coerce_number_filter_value(column_key: str, value, python_type):
    if python_type in {int, float} and isinstance(value, (int, float)) and not isinstance(value, bool):
        return python_type(value)
    if python_type is Decimal and isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        raise FilterValueError(column_key, "number")
    normalized = text.replace(",", ".")
    try:
        if python_type is int:
            return int(normalized)
        if python_type is float:
            return float(normalized)
        return Decimal(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise FilterValueError(column_key, "number")


def _coerce_date_filter_value(column_key: str, value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    text = str(value or "").strip()
    if not text:
        raise FilterValueError(column_key, "date")
    try:
        # Accept either YYYY-MM-DD or full ISO datetime and take its date part.
        if "T" in text or " " in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise FilterValueError(column_key, "date")


def _coerce_datetime_filter_value(column_key: str, value):
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise FilterValueError(column_key, "datetime")
        try:
            if "T" not in text and " " not in text and len(text) == 10:
                # Date-only value for timestamp columns -> start of the day.
                parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise FilterValueError(column_key, "datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_value(column: Column, value: Any) -> Any:
    """Convert ``value`` to the python type of ``column``; raise FilterValueError if it does not fit."""
    if value is None:
        return None
    python_type = column_python_type(column)
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value).strip())
        except ValueError:
            raise FilterValueError(column.name, "uuid")
    if python_type is bool:
        return _coerce_bool_filter_value(column.name, value)
    if python_type in {int, float, Decimal}:
        return _coerce_number_filter_value(column.name, value, python_type)
    if python_type is datetime:
        return _coerce_datetime_filter_value(column.name, value)
    if python_type is date:
        return _coerce_date_filter_value(column.name, value)
    return value


def _coerce_many(column: Column, values: Iterable[str]) -> list[Any]:
    result = []
    for value in values:
        try:
            result.append(coerce_value(column, value))
        except FilterValueError:
            _LOG.debug("dropping operand %r for column %s", value, column.name)
    return result


def _like_pattern(value: str) -> str:
    if value and not any(ch in value for ch in LIKE_WILDCARDS):
        return f"%{value}%"
    return value


def _clause_predicates(column: Column, clause: FilterClause) -> list[ColumnElement]:
    op = clause.op
    values = clause.values

    if op == "notnull":
        return [column.is_not(None)]
    if op == "isnull":
        is_null = parse_bool_value(values[0] if values else None)
        if is_null is False:
            return [column.is_not(None)]
        return [column.is_(None)]

    if not values:
        return []

    if op == "like":
        pattern = _like_pattern(values[0])
        if not pattern:
            return []
        target = column if column_python_type(column) is str else cast(column, String)
        return [target.like(pattern)]

    if op in {"in", "nin"}:
        members = _coerce_many(column, split_comma_values(values))
        if not members:
            return []
        return [column.in_(members) if op == "in" else column.not_in(members)]

    if op == "between":
        parts = split_comma_values(values)
        if len(parts) < 2:
            return []
        low, high = coerce_value(column, parts[0]), coerce_value(column, parts[1])
        return [column >= low, column <= high]

    value = coerce_value(column, values[0])
    if op == "eq":
        return [column == value]
    if op == "ne":
        return [column != value]
    if op == "gt":
        return [column > value]
    if op == "gte":
        return [column >= value]
    if op == "lt":
        return [column < value]
    if op == "lte":
        return [column <= value]
    return []


def build_predicates(schema: ResourceSchema, clauses: Iterable[FilterClause]) -> list[ColumnElement]:
    allowed = schema.allowed
    predicates: list[ColumnElement] = []
    for clause in clauses:
        if not clause.column or clause.column not in allowed:
            continue
        column = schema.by_name[clause.column].column
        try:
            predicates.extend(_clause_predicates(column, clause))
        except FilterValueError as exc:
            _LOG.debug("dropping filter %s__%s: %s", clause.column, clause.op, exc)
    return predicates


def apply_filters(q: Query, schema: ResourceSchema, clauses: Iterable[FilterClause]) -> Query:
    predicates = build_predicates(schema, clauses)
    if not predicates:
        return q
    return q.filter(*predicates)
