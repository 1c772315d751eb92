"""Integration tests for health check endpoints."""

from unittest.mock import AsyncMock

from httpx import AsyncClient

from agrisearch import __version__
from agrisearch.api.sessions import SessionRegistry
from agrisearch.exceptions import StorageError


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    async def test_health_returns_200(self, client: AsyncClient) -> None:
        """Health endpoint returns 200 OK."""
        response = await client.get("/health")
        assert response.status_code == 200

    async def test_health_returns_status(self, client: AsyncClient) -> None:
        """Health endpoint returns healthy status."""
        response = await client.get("/health")
        data = response.json()
        assert data["status"] == "healthy"

    async def test_health_returns_version(self, client: AsyncClient) -> None:
        """Health endpoint returns application version."""
        response = await client.get("/health")
        data = response.json()
        assert data["version"] == __version__

    async def test_health_returns_timestamp(self, client: AsyncClient) -> None:
        """Health endpoint returns ISO timestamp."""
        response = await client.get("/health")
        data = response.json()
        assert "timestamp" in data
        # Verify ISO format (contains T separator)
        assert "T" in data["timestamp"]


class TestReadinessEndpoint:
    """Tests for /health/ready endpoint."""

    async def test_readiness_returns_200(
        self,
        api_registry: SessionRegistry,
        client: AsyncClient,
    ) -> None:
        """Readiness endpoint returns 200 OK."""
        response = await client.get("/health/ready")
        assert response.status_code == 200

    async def test_readiness_returns_status(
        self,
        api_registry: SessionRegistry,
        client: AsyncClient,
    ) -> None:
        """Readiness endpoint returns ready status."""
        response = await client.get("/health/ready")
        data = response.json()
        assert data["status"] == "ready"

    async def test_readiness_returns_checks(
        self,
        api_registry: SessionRegistry,
        client: AsyncClient,
    ) -> None:
        """Readiness endpoint returns component checks."""
        response = await client.get("/health/ready")
        data = response.json()
        assert "checks" in data
        assert data["checks"]["config"] == "ok"

    async def test_readiness_returns_timestamp(
        self,
        api_registry: SessionRegistry,
        client: AsyncClient,
    ) -> None:
        """Readiness endpoint returns timestamp."""
        response = await client.get("/health/ready")
        data = response.json()
        assert "timestamp" in data

    async def test_readiness_storage_failure(
        self,
        api_registry: SessionRegistry,
        client: AsyncClient,
    ) -> None:
        """Unreadable storage makes the service not ready."""
        api_registry.check_storage = AsyncMock(side_effect=StorageError("disk gone"))

        response = await client.get("/health/ready")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["storage"] == "error"


class TestLivenessEndpoint:
    """Tests for /health/live endpoint."""

    async def test_liveness_returns_200(self, client: AsyncClient) -> None:
        """Liveness endpoint returns 200 OK."""
        response = await client.get("/health/live")
        assert response.status_code == 200

    async def test_liveness_returns_alive(self, client: AsyncClient) -> None:
        """Liveness endpoint returns alive status."""
        response = await client.get("/health/live")
        data = response.json()
        assert data["status"] == "alive"

