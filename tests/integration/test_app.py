"""Integration tests for app-level routes and middleware"""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from splitbill.config import Settings
from splitbill.services.redis_store import RedisStore


class TestAppRoutes:
    """Test root, health and request tagging"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("redis_ok,redis_state", [(True, "up"), (False, "down")])
    async def test_health(self, client: AsyncClient, monkeypatch, redis_ok, redis_state):
        """Test health reports the Redis connection"""
        monkeypatch.setattr(RedisStore, "ping", AsyncMock(return_value=redis_ok))

        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "redis": redis_state}

    @pytest.mark.asyncio
    async def test_root_points_at_docs(self, client: AsyncClient):
        response = await client.get("/")

        assert response.json()["docs_url"] == "/docs"

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, client: AsyncClient):
        """Test a caller-provided correlation id comes back on the response"""
        response = await client.get("/", headers={"X-Correlation-ID": "abc-123"})

        assert response.headers["X-Correlation-ID"] == "abc-123"
        assert "X-Process-Time" in response.headers

    @pytest.mark.asyncio
    async def test_correlation_id_is_generated(self, client: AsyncClient):
        response = await client.get("/")

        assert response.headers["X-Correlation-ID"]


class TestSettings:
    """Test settings validation"""

    def test_log_level_is_normalized(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self):
        with pytest.raises(ValueError):
            Settings(log_level="chatty")

    def test_unsupported_database(self):
        with pytest.raises(ValueError):
            Settings(database_url="mysql://localhost/splitbill")

    def test_sqlite_database_allowed(self):
        settings = Settings(database_url="sqlite+aiosqlite:///./splitbill.db")
        assert settings.database_url.startswith("sqlite")
