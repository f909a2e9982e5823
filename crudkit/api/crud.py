from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.params import Depends as DependsParam
from sqlalchemy.orm import Session

from crudkit.api.payloads import record_from_payload
from crudkit.api.response import row_to_dict, success
from crudkit.db.session import get_db
from crudkit.schemas.query import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, PageRequest
from crudkit.services.crud_service import CrudService
from crudkit.services.errors import InvalidInput
from crudkit.services.filter_grammar import extract_filters
from crudkit.services.ordering import parse_order_options
from crudkit.services.schema import ColumnRegistry


def _query_mapping(request: Request) -> dict[str, list[str]]:
    params = request.query_params
    return {key: params.getlist(key) for key in params.keys()}


def _int_param(query: Mapping[str, list[str]], key: str, default: int) -> int:
    values = query.get(key) or []
    raw = values[0].strip() if values else ""
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f"{key} must be an integer")


def page_request_from_query(query: Mapping[str, list[str]]) -> PageRequest:
    return PageRequest(
        page=_int_param(query, "page", DEFAULT_PAGE),
        size=_int_param(query, "size", DEFAULT_PAGE_SIZE),
    )


def build_crud_router(
    model: type,
    *,
    registry: ColumnRegistry | None = None,
    dependencies: Sequence[DependsParam] | None = None,
) -> APIRouter:
    service = CrudService(model, registry)
    router = APIRouter(dependencies=list(dependencies or []))

    @router.post("")
    def save_or_update(payload: dict[str, Any], db: Session = Depends(get_db)):
        record = record_from_payload(service.registry.schema_for(model), payload)
        saved = service.save_or_update(db, record)
        return success(row_to_dict(saved))

    @router.get("")
    def list_rows(request: Request, db: Session = Depends(get_db)):
        query = _query_mapping(request)
        page = page_request_from_query(query)
        result = service.paginate(
            db,
            page.page,
            page.size,
            filters=extract_filters(query),
            orders=parse_order_options(query),
        )
        return success(
            {
                "list": [row_to_dict(row) for row in result.items],
                "page": page.page,
                "size": page.size,
                "total": result.total,
            }
        )

    @router.delete("")
    def delete_row(id: str | None = None, db: Session = Depends(get_db)):
        service.delete_by_id(db, id)
        return success({"id": id})

    return router
