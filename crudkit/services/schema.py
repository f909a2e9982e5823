"""Per-type field descriptors for mapped resource models.

A ``ResourceSchema`` is derived once per model class and never mutated. It
lists every addressable column with its store-facing name, the attribute key
used on instances, and the flags the upsert diff needs (primary key,
auto-managed, writable). The filter/order allowlist is the subset of store
names that match ``^[A-Za-z0-9_]+$``.

``ColumnRegistry`` memoizes schemas. Lookups are unsynchronized: two threads
racing on a cold entry derive equal schemas and the later write wins.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy import Column
from sqlalchemy.inspection import inspect as sa_inspect

from crudkit.services.errors import InvalidInput

_LOG = logging.getLogger("crudkit.schema")

COLUMN_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass(frozen=True, eq=False)
class FieldInfo:
    name: str
    attr: str
    column: Column
    python_type: type | None
    is_primary_key: bool
    is_auto_managed: bool
    writable: bool


@dataclass(frozen=True, eq=False)
class ResourceSchema:
    model: type
    fields: tuple[FieldInfo, ...]
    primary_keys: tuple[FieldInfo, ...]
    allowed: frozenset[str]
    by_name: Mapping[str, FieldInfo]

    @property
    def primary_key(self) -> FieldInfo | None:
        if len(self.primary_keys) != 1:
            return None
        return self.primary_keys[0]


def is_zero_value(value: Any) -> bool:
    """Return True when ``value`` is the type default, read as "not supplied"."""
    if value is None:
        return True
    if isinstance(value, bool):
        return value is False
    if isinstance(value, (int, float, Decimal)):
        return value == 0
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    if isinstance(value, uuid.UUID):
        return value.int == 0
    return False


def column_python_type(column: Column) -> type | None:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _is_auto_managed(column: Column) -> bool:
    if column.info.get("auto_managed"):
        return True
    return column.onupdate is not None


def _is_writable(column: Column) -> bool:
    if column.primary_key or column.computed is not None:
        return False
    return not column.info.get("readonly", False)


def introspect(model: type) -> ResourceSchema | None:
    mapper = sa_inspect(model, raiseerr=False)
    if mapper is None or not hasattr(mapper, "column_attrs"):
        return None

    fields: list[FieldInfo] = []
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        if not isinstance(column, Column):
            # SQL expressions mapped as attributes are not addressable columns.
            continue
        fields.append(
            FieldInfo(
                name=column.name or prop.key,
                attr=prop.key,
                column=column,
                python_type=column_python_type(column),
                is_primary_key=bool(column.primary_key),
                is_auto_managed=_is_auto_managed(column),
                writable=_is_writable(column),
            )
        )

    allowed = set()
    for info in fields:
        if COLUMN_NAME_RE.fullmatch(info.name):
            allowed.add(info.name)
        else:
            _LOG.debug("column %r of %s excluded from allowlist", info.name, model.__name__)

    return ResourceSchema(
        model=model,
        fields=tuple(fields),
        primary_keys=tuple(info for info in fields if info.is_primary_key),
        allowed=frozenset(allowed),
        by_name=MappingProxyType({info.name: info for info in fields}),
    )


class ColumnRegistry:
    def __init__(self) -> None:
        self._schemas: dict[type, ResourceSchema | None] = {}

    def _lookup(self, model: type) -> ResourceSchema | None:
        try:
            return self._schemas[model]
        except KeyError:
            pass
        schema = introspect(model)
        if schema is None:
            _LOG.warning("type %r is not introspectable; filtering and ordering disabled", model)
        self._schemas[model] = schema
        return schema

    def schema_for(self, model: type) -> ResourceSchema:
        schema = self._lookup(model)
        if schema is None:
            raise InvalidInput(f"{getattr(model, '__name__', model)!s} is not a mapped resource")
        return schema

    def allowed_columns(self, model: type) -> frozenset[str]:
        schema = self._lookup(model)
        if schema is None:
            return frozenset()
        return schema.allowed


default_registry = ColumnRegistry()
