# backend/homepath/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import DependencyFailure, HomepathError
from .logging_config import configure_logging
from .middleware.request_context import RequestContextMiddleware

from .routers.meta import router as meta_router
from .routers.dashboard import router as dashboard_router
from .routers.properties import router as properties_router
from .routers.steps import router as steps_router
from .routers.documents import router as documents_router
from .routers.calendar import router as calendar_router

API_PREFIX = "/api"

log = logging.getLogger("homepath.api")


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        return [x.strip() for x in val.split(",") if x.strip()] or ["*"]
    return list(val) or ["*"]


async def _homepath_error_handler(request: Request, exc: HomepathError) -> JSONResponse:
    if isinstance(exc, DependencyFailure):
        # cause already logged at the storage seam
        log.error("request failed on a dependency", extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.response_detail()})


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Homepath Acquisition Tracker", version=settings.app_version)

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HomepathError, _homepath_error_handler)

    for router in (
        meta_router,
        dashboard_router,
        properties_router,
        steps_router,
        documents_router,
        calendar_router,
    ):
        app.include_router(router, prefix=API_PREFIX)

    return app


app = create_app()
