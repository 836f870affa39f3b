"""
FastAPI application factory for the GitHub SCM adapter.

Uses a lifespan handler to configure logging and build the adapter from
settings when one was not supplied to the factory.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from scm_github.config import settings
from scm_github.errors import (
    CircuitOpenError,
    InvalidSignatureError,
    NotFoundError,
    ValidationError,
)
from scm_github.logging_config import configure_logging, get_logger
from scm_github.services.github_scm import GithubScm

from .health import router as health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    logger.info("Starting SCM adapter API", app=settings.app_name)

    if app.state.scm is None:
        app.state.scm = GithubScm(settings.github.model_dump())
    logger.info("GitHub adapter initialized", scm_context=app.state.scm.scm_context)

    yield

    logger.info("Shutting down SCM adapter API")


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def create_application(scm: GithubScm | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SCM GitHub",
        description="GitHub source control adapter for pipeline orchestration",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.scm = scm

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Ensure every request has a request ID for logging correlation."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        structlog.contextvars.unbind_contextvars("request_id")

        return response

    @app.exception_handler(InvalidSignatureError)
    async def invalid_signature_handler(
        request: Request, exc: InvalidSignatureError
    ) -> JSONResponse:
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(CircuitOpenError)
    async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
        logger.warning("Rejected while circuit breaker is open", path=str(request.url.path))
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    # Health endpoints (no prefix)
    app.include_router(health_router)

    from scm_github.api.routers.stats import router as stats_router

    app.include_router(stats_router)

    from scm_github.api.routers.webhooks import router as webhooks_router

    app.include_router(webhooks_router)

    return app


# Application instance
app = create_application()
