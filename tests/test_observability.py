"""Tests for observability module."""

from httpx import AsyncClient

from agrisearch.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_backend_initialization,
    track_backend_state,
    track_embedding_request,
    track_indexed_documents,
    track_search_request,
)


class TestMetricsEndpoint:
    """Tests for /metrics endpoint."""

    async def test_metrics_endpoint_returns_prometheus_format(
        self,
        client: AsyncClient,
    ) -> None:
        """Metrics endpoint returns Prometheus format."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert b"# HELP" in response.content


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        """get_metrics returns bytes."""
        assert isinstance(get_metrics(), bytes)

    def test_track_embedding_request(self) -> None:
        """Embedding requests are labelled by backend and model."""
        track_embedding_request(backend="local", model="minilm", duration=0.02)
        track_embedding_request(backend="remote", model="bge", duration=0.5, success=False)

        metrics = get_metrics().decode()
        assert "embedding_request_duration_seconds" in metrics
        assert 'embedding_requests_total{backend="remote",model="bge",status="error"}' in metrics

    def test_track_backend_state(self) -> None:
        """Only the current state is set to 1."""
        states = ["uninitialized", "initializing", "ready", "failed"]
        track_backend_state("local", "ready", states)

        metrics = get_metrics().decode()
        assert 'backend_state{backend="local",state="ready"} 1.0' in metrics
        assert 'backend_state{backend="local",state="failed"} 0.0' in metrics

    def test_track_backend_initialization(self) -> None:
        """Initialization duration is recorded."""
        track_backend_initialization("local", 3.2, success=True)

        assert "backend_initialization_duration_seconds" in get_metrics().decode()

    def test_track_search_request(self) -> None:
        """Search results and top similarity are recorded."""
        track_search_request(duration=0.05, results_returned=3, top_similarity=0.91)

        metrics = get_metrics().decode()
        assert "search_duration_seconds" in metrics
        assert "search_results_returned" in metrics
        assert "search_top_similarity" in metrics

    def test_track_indexed_documents(self) -> None:
        """Indexing outcomes are counted by status."""
        track_indexed_documents(succeeded=2, failed=1)

        metrics = get_metrics().decode()
        assert 'indexed_documents_total{status="success"}' in metrics
        assert 'indexed_documents_total{status="error"}' in metrics


class TestMetricsMiddleware:
    """Tests for MetricsMiddleware."""

    async def test_middleware_records_request_metrics(self, client: AsyncClient) -> None:
        """Middleware records HTTP request metrics."""
        await client.get("/health")

        metrics = get_metrics().decode()
        assert "http_request_duration_seconds" in metrics
        assert 'endpoint="/health"' in metrics

    def test_normalizes_session_paths(self) -> None:
        """User ids are dropped from session paths."""
        middleware = MetricsMiddleware(app=lambda *_: None)

        assert (
            middleware._normalize_endpoint("/api/v1/sessions/user-42/search")
            == "/api/v1/sessions/search"
        )
        assert middleware._normalize_endpoint("/api/v1/sessions/user-42") == "/api/v1/sessions"
        assert middleware._normalize_endpoint("/health/ready") == "/health"
