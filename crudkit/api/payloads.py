from __future__ import annotations

from typing import Any

from crudkit.services.errors import InvalidInput
from crudkit.services.schema import ResourceSchema
from crudkit.services.universal_query import FilterValueError, coerce_value


def record_from_payload(schema: ResourceSchema, payload: Any) -> Any:
    """Build an unsaved model instance from a JSON object, rejecting unknown fields."""
    if not isinstance(payload, dict):
        raise InvalidInput("request body must be a JSON object")

    fields = {info.attr: info for info in schema.fields}
    unknown = sorted(set(payload) - set(fields))
    if unknown:
        raise InvalidInput(f"unknown fields: {', '.join(unknown)}")

    values: dict[str, Any] = {}
    for key, value in payload.items():
        info = fields[key]
        if isinstance(value, str) and info.python_type is not str:
            try:
                value = coerce_value(info.column, value)
            except FilterValueError as exc:
                raise InvalidInput(str(exc)) from exc
        values[key] = value
    return schema.model(**values)
