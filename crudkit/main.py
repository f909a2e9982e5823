from __future__ import annotations

from collections.abc import Mapping

from fastapi import Depends, FastAPI

from crudkit.api.crud import build_crud_router
from crudkit.api.response import install_error_handlers, success
from crudkit.core.config import settings
from crudkit.core.deps import get_current_claims
from crudkit.core.logs import setup_logging
from crudkit.core.request_context import install_request_context
from crudkit.services.schema import ColumnRegistry


def create_app(
    resources: Mapping[str, type] | None = None,
    *,
    registry: ColumnRegistry | None = None,
    require_auth: bool = False,
) -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.APP_NAME)
    install_request_context(app)
    install_error_handlers(app)

    dependencies = [Depends(get_current_claims)] if require_auth else []
    for name, model in (resources or {}).items():
        app.include_router(
            build_crud_router(model, registry=registry, dependencies=dependencies),
            prefix=f"/api/{name.strip('/')}",
            tags=[name],
        )

    @app.get("/health")
    def health():
        return success({"status": "ok", "env": settings.APP_ENV})

    return app


app = create_app()
