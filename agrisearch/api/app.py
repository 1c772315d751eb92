"""FastAPI application entry point.

Serves the semantic index of each local user session, plus health checks
and Prometheus metrics.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from agrisearch import __version__
from agrisearch.api.routes import router
from agrisearch.api.sessions import get_registry
from agrisearch.config import get_settings
from agrisearch.exceptions import AgriSearchError, ErrorCode
from agrisearch.logging_config import get_logger, setup_logging
from agrisearch.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)

_STATUS_CODES = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.DOCUMENT_INVALID: 400,
    ErrorCode.EMPTY_QUERY: 400,
    ErrorCode.DOCUMENT_NOT_FOUND: 404,
    ErrorCode.EMBEDDING_DIMENSION_MISMATCH: 409,
    ErrorCode.LLM_RATE_LIMIT: 429,
    ErrorCode.BACKEND_INIT_FAILED: 502,
    ErrorCode.EMBEDDING_UNAVAILABLE: 502,
    ErrorCode.LLM_SERVICE_ERROR: 502,
    ErrorCode.BACKEND_NOT_READY: 503,
    ErrorCode.LLM_TIMEOUT: 504,
    ErrorCode.STORAGE_QUOTA_EXCEEDED: 507,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Configures logging on startup and closes all sessions on shutdown.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting AgriSearch",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    yield

    logger.info("Shutting down AgriSearch")
    registry_provider = app.dependency_overrides.get(get_registry, get_registry)
    await registry_provider().close()
    get_registry.cache_clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="AgriSearch",
        description="On-device semantic search over agricultural records",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(AgriSearchError, agrisearch_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def agrisearch_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert AgriSearchError exceptions to structured JSON responses."""
    if not isinstance(exc, AgriSearchError):
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": str(exc),
                    "details": {},
                }
            },
        )

    status_code = get_status_code(exc.code)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(status_code=status_code, content=exc.to_dict())


def get_status_code(code: ErrorCode) -> int:
    """Map an error code to an HTTP status code."""
    return _STATUS_CODES.get(code, 500)


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> JSONResponse:
    """Readiness probe.

    Checks that the local vector store can be read.

    Returns:
        Readiness status with component checks; 503 when not ready.
    """
    checks: dict[str, str] = {"config": "ok"}

    registry_provider = request.app.dependency_overrides.get(get_registry, get_registry)
    try:
        await registry_provider().check_storage()
        checks["storage"] = "ok"
    except AgriSearchError as e:
        logger.warning(f"Storage readiness check failed: {e.message}")
        checks["storage"] = "error"

    all_ok = all(v == "ok" for v in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
