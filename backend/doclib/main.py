"""
Document Library FastAPI Application Entry Point.

Run with: uvicorn doclib.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doclib import __version__
from doclib.api.routes import auth, documents, preferences, subjects
from doclib.config import Settings, get_settings, sanitize_error
from doclib.errors import (
    BackendUnavailable,
    FileTooLarge,
    GatewayError,
    ImageDecodeError,
    InvalidPayload,
    NotFound,
)
from doclib.gateway import create_gateway
from doclib.services.data_service import DataService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the DataService on startup unless one was injected; close it on shutdown."""
    service: DataService | None = getattr(app.state, "data_service", None)
    if service is None:
        settings: Settings = app.state.settings
        service = DataService(create_gateway(settings), settings)
        app.state.data_service = service

    await service.init()
    logger.info("Document library started (backend=%s)", service.settings.backend)
    yield
    await service.close()


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(FileTooLarge)
    async def file_too_large(request: Request, exc: FileTooLarge) -> JSONResponse:
        return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, str(exc))

    @app.exception_handler(ImageDecodeError)
    async def image_decode_error(request: Request, exc: ImageDecodeError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(InvalidPayload)
    async def invalid_payload(request: Request, exc: InvalidPayload) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        if isinstance(exc, BackendUnavailable):
            logger.error("Backend unavailable during %s %s: %s", request.method, request.url.path, exc)
            return _error(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                sanitize_error(exc, generic_message="Backend unavailable."),
            )
        logger.error("Backend rejected %s %s: %s", request.method, request.url.path, exc)
        return _error(
            status.HTTP_502_BAD_GATEWAY,
            sanitize_error(exc, generic_message="Backend request failed."),
        )


def create_app(data_service: DataService | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    A ``data_service`` passed in is used as is; otherwise the lifespan builds
    one from ``settings`` with the configured gateway.
    """
    settings = settings or (data_service.settings if data_service else get_settings())

    app = FastAPI(
        title=settings.app_name,
        description="Document library API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if data_service is not None:
        app.state.data_service = data_service

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(auth.router)
    app.include_router(subjects.router)
    app.include_router(documents.router)
    app.include_router(preferences.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
