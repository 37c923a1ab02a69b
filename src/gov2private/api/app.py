from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gov2private.api.routes import router as api_router
from gov2private.api.schemas import ErrorResponse
from gov2private.config import get_settings
from gov2private.core.errors import Gov2PrivateError
from gov2private.db.init import init_database

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        init_database()

    @app.exception_handler(Gov2PrivateError)
    async def _domain_error(request: Request, exc: Gov2PrivateError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s %s failed code=%s: %s", request.method, request.url.path, exc.code, exc.detail)
        body = ErrorResponse(code=exc.code, error=exc.detail)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.get("/health")
    def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    app.include_router(api_router)
    return app
