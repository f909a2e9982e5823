from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("crudkit.http")


@dataclass
class RequestContext:
    request_id: str
    client_ip: str = ""
    started_at: float = field(default_factory=perf_counter)

    @property
    def elapsed_ms(self) -> float:
        return (perf_counter() - self.started_at) * 1000.0


def accept_request_id(raw: str | None) -> str:
    """Keep a caller-supplied id when it is safe to echo, otherwise mint one."""
    value = str(raw or "").strip()
    if _REQUEST_ID_RE.fullmatch(value):
        return value
    return uuid4().hex


def context_of(request: Request) -> RequestContext:
    ctx = getattr(request.state, "context", None)
    if ctx is None:
        ctx = RequestContext(
            request_id=accept_request_id(request.headers.get(REQUEST_ID_HEADER)),
            client_ip=request.client.host if request.client else "",
        )
        request.state.context = ctx
    return ctx


def install_request_context(app: FastAPI) -> None:
    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        ctx = context_of(request)
        try:
            response = await call_next(request)
        except Exception:
            _LOG.exception(
                "%s %s failed after %.2fms request_id=%s",
                request.method,
                request.url.path,
                ctx.elapsed_ms,
                ctx.request_id,
            )
            raise

        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        response.headers["Cache-Control"] = "no-store"
        _LOG.info(
            "%s %s status=%s duration_ms=%.2f ip=%s request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            ctx.elapsed_ms,
            ctx.client_ip,
            ctx.request_id,
        )
        return response
