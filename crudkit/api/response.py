from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.inspection import inspect as sa_inspect
from starlette.exceptions import HTTPException as StarletteHTTPException

from crudkit.core.request_context import context_of
from crudkit.services.errors import ServiceError

SUCCESS_CODE = 0
SUCCESS_MESSAGE = "OK"

_LOG = logging.getLogger("crudkit.api")


def serialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: serialize_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    return value


def row_to_dict(row: Any) -> dict[str, Any]:
    mapper = sa_inspect(type(row))
    return {prop.key: serialize_value(getattr(row, prop.key)) for prop in mapper.column_attrs}


def success(data: Any = None, status_code: int = 200) -> JSONResponse:
    body = {
        "code": SUCCESS_CODE,
        "message": SUCCESS_MESSAGE,
        "data": serialize_value(data) if data is not None else {},
    }
    return JSONResponse(status_code=status_code, content=body)


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_response(request: Request, status_code: int, message: str | None) -> JSONResponse:
    ctx = context_of(request)
    if status_code < 400:
        status_code = 500
    text = str(message or "").strip() or _reason(status_code)
    log = _LOG.error if status_code >= 500 else _LOG.warning
    log(
        "status=%s message=%s method=%s path=%s ip=%s request_id=%s",
        status_code,
        text,
        request.method,
        request.url.path,
        ctx.client_ip,
        ctx.request_id,
    )
    return JSONResponse(status_code=status_code, content={"code": status_code, "message": text, "data": {}})


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for item in exc.errors():
        loc = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        msg = item.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "invalid request"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def _service_error(request: Request, exc: ServiceError):
        return error_response(request, exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return error_response(request, 400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        response = error_response(request, exc.status_code, str(exc.detail or ""))
        if exc.headers:
            response.headers.update(exc.headers)
        return response
