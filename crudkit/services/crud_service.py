"""Generic create/update/delete/list over a single mapped resource.

The service keeps no per-call state; every method receives the session it
works in. One logical operation is one round of statements against the store,
and store errors surface as ``StoreFailure`` after the session is rolled back.

Partial updates treat zero values (``None``, ``0``, ``""``, ``False``, empty
collections) as "not supplied". A field therefore cannot be reset to its zero
value through ``save_or_update``; callers that need that must write the column
explicitly.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ClauseElement

from crudkit.schemas.query import FilterClause, OrderSpec, PageRequest, PageResult
from crudkit.services.errors import InvalidInput, NotFound, StoreFailure
from crudkit.services.filter_grammar import parse_filters
from crudkit.services.ordering import order_by_clauses, resolve_order
from crudkit.services.schema import ColumnRegistry, FieldInfo, ResourceSchema, default_registry, is_zero_value
from crudkit.services.universal_query import apply_filters

_LOG = logging.getLogger("crudkit.crud")

T = TypeVar("T")

_UNSIGNED_INT_RE = re.compile(r"^[0-9]+$")

FilterInput = Mapping[str, str | Sequence[str]] | Iterable[FilterClause]


def _onupdate_value(info: FieldInfo) -> Any:
    default = info.column.onupdate
    if getattr(default, "is_callable", False):
        # Zero-argument callables ignore the context; ones that read it are unsupported.
        return default.arg(None)
    return default.arg


class CrudService(Generic[T]):
    def __init__(self, model: type[T], registry: ColumnRegistry | None = None):
        self.model = model
        self.registry = registry or default_registry

    @property
    def resource_name(self) -> str:
        return getattr(self.model, "__tablename__", self.model.__name__)

    def _schema(self) -> ResourceSchema:
        return self.registry.schema_for(self.model)

    def _primary_key(self, schema: ResourceSchema) -> FieldInfo:
        primary = schema.primary_key
        if primary is None:
            raise InvalidInput(f"{self.resource_name}: a single primary key is required")
        return primary

    def _store_failure(self, db: Session, action: str, exc: SQLAlchemyError) -> StoreFailure:
        db.rollback()
        return StoreFailure(f"{action} {self.resource_name} failed: {exc.__class__.__name__}")

    def save_or_update(self, db: Session, record: T | None) -> T:
        if record is None:
            raise InvalidInput("record is required")
        if not isinstance(record, self.model):
            raise InvalidInput(f"expected {self.model.__name__}, got {type(record).__name__}")

        schema = self._schema()
        primary = self._primary_key(schema)
        pk_value = getattr(record, primary.attr, None)

        if is_zero_value(pk_value):
            return self._create(db, record, primary)
        return self._update(db, record, schema, primary, pk_value)

    def _create(self, db: Session, record: T, primary: FieldInfo) -> T:
        # Let the store or the column default assign the key.
        setattr(record, primary.attr, None)
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError as exc:
            raise self._store_failure(db, "insert into", exc) from exc
        _LOG.debug("created %s %s", self.resource_name, getattr(record, primary.attr, None))
        return record

    def changed_values(self, record: T, schema: ResourceSchema) -> dict[str, Any]:
        """Return the update write set keyed by column name.

        Columns with ``onupdate`` are always written with a freshly evaluated
        value. Every other writable column, including ones flagged
        ``auto_managed`` without an ``onupdate``, is written only when the
        record holds a non-zero value for it.
        """
        table = self._primary_key(schema).column.table
        values: dict[str, Any] = {}
        for info in schema.fields:
            if not info.writable or info.column.table is not table:
                continue
            if info.is_auto_managed and info.column.onupdate is not None:
                values[info.name] = _onupdate_value(info)
                continue
            value = getattr(record, info.attr, None)
            if is_zero_value(value):
                continue
            values[info.name] = value
        return values

    def _update(self, db: Session, record: T, schema: ResourceSchema, primary: FieldInfo, pk_value: Any) -> T:
        values = self.changed_values(record, schema)
        if not values:
            return record

        stmt = (
            update(primary.column.table)
            .where(primary.column == pk_value)
            .values({schema.by_name[name].column: value for name, value in values.items()})
        )
        try:
            result = db.execute(stmt)
            db.commit()
        except SQLAlchemyError as exc:
            raise self._store_failure(db, "update", exc) from exc

        for name, value in values.items():
            info = schema.by_name[name]
            if info.column.onupdate is not None and not isinstance(value, ClauseElement):
                setattr(record, info.attr, value)
        _LOG.debug("updated %s %s columns=%s rows=%s", self.resource_name, pk_value, sorted(values), result.rowcount)
        return record

    def _primary_key_value(self, primary: FieldInfo, raw: str) -> Any:
        python_type = primary.python_type
        if python_type is uuid.UUID:
            try:
                return uuid.UUID(raw)
            except ValueError:
                # No UUID key can equal a malformed id.
                raise NotFound(f"{self.resource_name} {raw!r} not found")
        if python_type is str:
            return raw
        if _UNSIGNED_INT_RE.fullmatch(raw):
            return int(raw)
        if python_type is int:
            # No integer key can equal a non-numeric id.
            raise NotFound(f"{self.resource_name} {raw!r} not found")
        return raw

    def delete_by_id(self, db: Session, id: str | None) -> None:
        raw = str(id or "").strip()
        if not raw:
            raise InvalidInput("id is required")

        primary = self._primary_key(self._schema())
        value = self._primary_key_value(primary, raw)
        try:
            result = db.execute(delete(primary.column.table).where(primary.column == value))
            db.commit()
        except SQLAlchemyError as exc:
            raise self._store_failure(db, "delete from", exc) from exc

        if result.rowcount == 0:
            raise NotFound(f"{self.resource_name} {raw!r} not found")
        _LOG.debug("deleted %s %s", self.resource_name, raw)

    def paginate(
        self,
        db: Session,
        page: int,
        size: int,
        filters: FilterInput | None = None,
        orders: Iterable[str | OrderSpec] | None = None,
    ) -> PageResult[T]:
        request = PageRequest(page=page, size=size)
        schema = self._schema()

        if filters is None or isinstance(filters, Mapping):
            clauses = parse_filters(filters)
        else:
            clauses = list(filters)

        query = apply_filters(db.query(self.model), schema, clauses)
        order = resolve_order(orders, schema.allowed)
        try:
            total = query.count()
            rows = (
                query.order_by(*order_by_clauses(schema, order))
                .limit(request.size)
                .offset(request.offset)
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._store_failure(db, "query", exc) from exc

        return PageResult(items=rows, total=int(total))
