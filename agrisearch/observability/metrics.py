"""Prometheus metrics for the semantic index.

Provides metrics instrumentation for:
- HTTP request latency and counts on the local API
- Embedding request latency per backend
- Backend lifecycle state
- Similarity search latency, result counts and scores
- Indexing outcomes
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from agrisearch.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["backend", "model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["backend", "model", "status"],
)

# Backend Metrics
BACKEND_STATE = Gauge(
    "backend_state",
    "1 for the current lifecycle state of the inference backend",
    ["backend", "state"],
)

BACKEND_INIT_DURATION = Histogram(
    "backend_initialization_duration_seconds",
    "Backend initialization duration in seconds",
    ["backend", "status"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 300.0],
)

# Search Metrics
SEARCH_DURATION = Histogram(
    "search_duration_seconds",
    "Similarity search duration in seconds",
    ["status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

SEARCH_RESULTS_RETURNED = Histogram(
    "search_results_returned",
    "Number of results returned per search",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)

SEARCH_TOP_SIMILARITY = Histogram(
    "search_top_similarity",
    "Top similarity per search",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

# Indexing Metrics
INDEXED_DOCUMENTS_TOTAL = Counter(
    "indexed_documents_total",
    "Documents processed by the indexing pipeline",
    ["status"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality.

        User ids are dropped from session paths:
        ``/api/v1/sessions/<user>/search`` becomes ``/api/v1/sessions/search``.
        """
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/api/v1/sessions/"):
            parts = path.split("/")
            if len(parts) >= 6:
                return f"/api/v1/sessions/{parts[5]}"
            return "/api/v1/sessions"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_embedding_request(
    backend: str,
    model: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        backend: Backend kind that served the request.
        model: Embedding model name.
        duration: Request duration in seconds.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(backend=backend, model=model, status=status).observe(
        duration
    )
    EMBEDDING_REQUEST_TOTAL.labels(backend=backend, model=model, status=status).inc()


def track_backend_state(backend: str, state: str, states: list[str]) -> None:
    """Mark ``state`` as the current lifecycle state of ``backend``."""
    for candidate in states:
        BACKEND_STATE.labels(backend=backend, state=candidate).set(
            1 if candidate == state else 0
        )


def track_backend_initialization(backend: str, duration: float, success: bool) -> None:
    """Track how long a backend took to become ready (or fail)."""
    status = "success" if success else "error"
    BACKEND_INIT_DURATION.labels(backend=backend, status=status).observe(duration)


def track_search_request(
    duration: float,
    results_returned: int,
    top_similarity: float,
    success: bool = True,
) -> None:
    """Track similarity search metrics.

    Args:
        duration: Search duration in seconds.
        results_returned: Number of results returned.
        top_similarity: Highest similarity among the results.
        success: Whether the search succeeded.
    """
    SEARCH_DURATION.labels(status="success" if success else "error").observe(duration)
    if not success:
        return

    SEARCH_RESULTS_RETURNED.observe(results_returned)
    if top_similarity > 0:
        SEARCH_TOP_SIMILARITY.observe(top_similarity)


def track_indexed_documents(succeeded: int, failed: int) -> None:
    """Count documents processed by an indexing batch."""
    if succeeded:
        INDEXED_DOCUMENTS_TOTAL.labels(status="success").inc(succeeded)
    if failed:
        INDEXED_DOCUMENTS_TOTAL.labels(status="error").inc(failed)
