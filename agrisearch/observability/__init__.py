"""Observability module for metrics and monitoring."""

from agrisearch.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_backend_initialization,
    track_backend_state,
    track_embedding_request,
    track_indexed_documents,
    track_search_request,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_backend_initialization",
    "track_backend_state",
    "track_embedding_request",
    "track_indexed_documents",
    "track_search_request",
]
