"""
FastAPI Application Setup

Main entry point for the AI Image Gallery API.

Responsibility:
    - FastAPI app initialization
    - Lifespan: build the service container, start/stop the annotation pipeline
    - Router registration (images, files)
    - CORS middleware configuration
    - Global exception handlers
    - Request logging middleware
    - Health check endpoint

Architecture Notes:
    - Part of API Layer (Presentation)
    - Entry point for HTTP server (uvicorn)
    - Centralizes cross-cutting concerns (logging, CORS, error handling)
    - No business logic - pure HTTP orchestration
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from image_gallery import __version__
from image_gallery.api.container import ServiceContainer, build_container_from_env
from image_gallery.api.routers import files, images
from image_gallery.api.schemas.common import ErrorResponse
from image_gallery.domain.shared.exceptions import (
    AnnotationRecordNotFoundError,
    DomainException,
    ImageNotFoundError,
    InvalidAccessSignatureError,
    InvalidInputError,
    InvalidStatusTransitionError,
    StorageError,
    UnauthorizedError,
    UnsupportedImageError,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ============================================================================
# RESPONSE MODELS
# ============================================================================


class HealthCheckResponse(BaseModel):
    """
    Health check response model.

    Attributes:
        status: "ok", or "degraded" when the state store is unreachable
        version: API version
        timestamp: Unix timestamp of health check
        pipeline_running: Whether the annotation pipeline is started
        queue_depth: Annotation jobs waiting in the queue
    """

    status: str = "ok"
    version: str = __version__
    timestamp: float
    pipeline_running: bool = False
    queue_depth: int = 0


# ============================================================================
# MIDDLEWARE
# ============================================================================


async def request_logging_middleware(request: Request, call_next):
    """
    Logs all incoming requests with method, path, status code, and duration.

    Logging Format:
        INFO: "Incoming request: POST /api/images/uploads"
        INFO: "Request completed: POST /api/images/uploads - 201 - 0.123s"
    """
    logger.info(f"Incoming request: {request.method} {request.url.path}")
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"Request completed: {request.method} {request.url.path} - "
        f"{response.status_code} - {duration:.3f}s"
    )
    return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

# Most specific classes first
_DOMAIN_ERROR_MAPPING: list[tuple[type[DomainException], int, str]] = [
    (ImageNotFoundError, status.HTTP_404_NOT_FOUND, "IMAGE_NOT_FOUND"),
    (AnnotationRecordNotFoundError, status.HTTP_404_NOT_FOUND, "ANNOTATION_NOT_FOUND"),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED"),
    (InvalidAccessSignatureError, status.HTTP_403_FORBIDDEN, "INVALID_SIGNATURE"),
    (
        UnsupportedImageError,
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        "UNSUPPORTED_IMAGE",
    ),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST, "INVALID_INPUT"),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT, "ANNOTATION_IN_PROGRESS"),
    (StorageError, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR"),
]


def _resolve_domain_error(exc: DomainException) -> tuple[int, str]:
    for exception_type, status_code, error_code in _DOMAIN_ERROR_MAPPING:
        if isinstance(exc, exception_type):
            return status_code, error_code
    return (
        status.HTTP_400_BAD_REQUEST,
        exc.__class__.__name__.replace("Error", "").upper(),
    )


async def domain_exception_handler(request: Request, exc: DomainException):
    """
    Global exception handler for domain layer exceptions.

    Mapping:
        - ImageNotFoundError, AnnotationRecordNotFoundError -> 404 Not Found
        - UnauthorizedError -> 401 Unauthorized
        - InvalidAccessSignatureError -> 403 Forbidden
        - UnsupportedImageError -> 415 Unsupported Media Type
        - InvalidInputError -> 400 Bad Request
        - InvalidStatusTransitionError -> 409 Conflict
        - StorageError -> 500 Internal Server Error
        - Other DomainException -> 400 Bad Request
    """
    status_code, error_code = _resolve_domain_error(exc)

    details = {"exception_type": exc.__class__.__name__}
    for attribute in ("image_id", "field_name", "filename"):
        value = getattr(exc, attribute, None)
        if value:
            details[attribute] = value

    error_response = ErrorResponse(
        code=error_code,
        message=str(exc),
        details=details,
    )

    logger.warning(
        f"Domain exception: {exc.__class__.__name__} - {str(exc)} - "
        f"Request: {request.method} {request.url.path}"
    )

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(),
        headers=headers,
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Catches all unhandled exceptions and converts to 500 Internal Server Error.
    Logs full stack trace for debugging.
    """
    error_response = ErrorResponse(
        code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        details={"error": str(exc), "type": exc.__class__.__name__},
    )

    logger.error(
        f"Unexpected error: {exc.__class__.__name__} - {str(exc)} - "
        f"Request: {request.method} {request.url.path}",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(),
    )


# ============================================================================
# APP FACTORY
# ============================================================================


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    FastAPI application factory.

    Args:
        container: Pre-built services (tests inject in-memory collaborators);
            built from the environment at startup when None

    Returns:
        Configured FastAPI application instance

    Usage:
        >>> app = create_app()
        >>> # uvicorn image_gallery.api.main:app --reload
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services = container or await build_container_from_env()
        app.state.container = services
        services.pipeline.start()
        try:
            yield
        finally:
            await services.pipeline.stop()
            await services.close()

    app = FastAPI(
        title="AI Image Gallery API",
        version=__version__,
        description=(
            "Upload images and get them annotated asynchronously by an AI vision "
            "service (caption, tags, dominant colors)."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(request_logging_middleware)

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(images.router, prefix="/api")
    app.include_router(files.router, prefix="/api")

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        status_code=status.HTTP_200_OK,
        summary="Health check endpoint",
        tags=["health"],
    )
    async def health_check(request: Request) -> HealthCheckResponse:
        services: ServiceContainer = request.app.state.container
        healthy = await services.store_healthy()
        return HealthCheckResponse(
            status="ok" if healthy else "degraded",
            timestamp=time.time(),
            pipeline_running=services.pipeline.is_started,
            queue_depth=services.pipeline.queue_depth,
        )

    logger.info("FastAPI application created successfully")
    return app


# Usage: uvicorn image_gallery.api.main:app --reload
app = create_app()
