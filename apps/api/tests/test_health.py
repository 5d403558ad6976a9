"""Tests for health check endpoints."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient

from katalog.core.database import get_async_session
from katalog.core.deps import get_db, get_redis
from katalog.main import app


@pytest.fixture
async def health_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
) -> AsyncGenerator[tuple[AsyncClient, AsyncMock], None]:
    """Client whose database session is a mock and whose Redis is fake."""
    session = AsyncMock()
    session.execute.return_value = MagicMock()

    async def _override_session() -> AsyncGenerator[AsyncMock, None]:
        yield session

    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_redis] = _override_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac, session

    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_root(plain_client: AsyncClient) -> None:
    """Test root endpoint returns API info."""
    response = await plain_client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "name" in data
    assert "version" in data
    assert "docs" in data


@pytest.mark.asyncio
async def test_liveness(plain_client: AsyncClient) -> None:
    """Test liveness probe endpoint."""
    response = await plain_client.get("/api/v1/health/live")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "alive"


async def test_health_checks_dependencies(
    health_client: tuple[AsyncClient, AsyncMock],
) -> None:
    client, _ = health_client

    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"] == {"database": "healthy", "redis": "healthy"}


async def test_readiness_fails_without_database(
    health_client: tuple[AsyncClient, AsyncMock],
) -> None:
    client, session = health_client
    session.execute.side_effect = ConnectionError("database is down")

    response = await client.get("/api/v1/health/ready")

    assert response.status_code == 503


async def test_request_id_header(plain_client: AsyncClient) -> None:
    response = await plain_client.get("/api/v1/health/live", headers={"X-Request-ID": "req-1"})
    assert response.headers["X-Request-ID"] == "req-1"


async def test_health_reports_unhealthy_database(
    health_client: tuple[AsyncClient, AsyncMock],
) -> None:
    client, session = health_client
    session.execute.side_effect = ConnectionError("database is down")

    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["checks"]["database"].startswith("unhealthy")
    assert data["checks"]["redis"] == "healthy"
    assert set(data) == {"status", "version", "environment", "checks"}
