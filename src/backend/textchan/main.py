from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from textchan import __version__
from textchan.api.router import api_router
from textchan.api.routes import health
from textchan.core.config import Settings, get_settings
from textchan.core.logging import configure_logging
from textchan.services.errors import ForumError
from textchan.services.forum import ForumService
from textchan.storage import build_backend

logger = logging.getLogger(__name__)


async def _forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if any(error.get("loc", ("",))[0] == "path" for error in exc.errors()):
        message = "Invalid thread ID"
    else:
        message = "Invalid request body"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None, service: ForumService | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        forum_service = service or ForumService.from_settings(settings, build_backend(settings))
        app.state.forum_service = forum_service
        posting = "ENABLED" if forum_service.policy.is_posting_allowed() else "DISABLED"
        logger.info("Textchan API ready; weekend posting: %s", posting)
        if settings.allow_weekday_posting:
            logger.warning("Weekday posting override is ACTIVE")
        logger.info("Using %s storage backend", settings.storage_backend)
        try:
            yield
        finally:
            if service is None:
                forum_service.close()

    app = FastAPI(
        title="Textchan API",
        version=__version__,
        docs_url="/docs" if settings.enable_swagger_ui else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if service is not None:
        app.state.forum_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ForumError, _forum_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    app.include_router(health.router)
    app.include_router(api_router, prefix="/api")
    return app


def build_app() -> FastAPI:
    """Application factory for ``uvicorn --factory textchan.main:build_app``."""
    configure_logging()
    return create_app()
