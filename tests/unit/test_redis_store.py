"""Unit tests for the Redis idempotency store"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from splitbill.services.redis_store import (IDEMPOTENCY_PENDING_TTL,
                                            IDEMPOTENCY_TTL, PENDING_MARKER,
                                            RedisStore, idempotency_key)


@pytest.fixture
def redis_client():
    client = MagicMock()
    with patch.object(RedisStore, "get_client", AsyncMock(return_value=client)):
        yield client


class TestIdempotencyStore:
    """Test recall_response and remember_response"""

    def test_key_is_namespaced(self):
        assert idempotency_key("bill", "abc") == "idempotency:bill:abc"

    @pytest.mark.asyncio
    async def test_recall_hit(self, redis_client):
        redis_client.get = AsyncMock(return_value='{"id": "x"}')

        assert await RedisStore.recall_response("bill", "abc") == '{"id": "x"}'
        redis_client.get.assert_awaited_once_with("idempotency:bill:abc")

    @pytest.mark.asyncio
    async def test_recall_when_redis_down(self, redis_client):
        """Test an outage reads as a miss"""
        redis_client.get = AsyncMock(side_effect=ConnectionError("redis down"))

        assert await RedisStore.recall_response("bill", "abc") is None

    @pytest.mark.asyncio
    async def test_remember_replaces_reservation(self, redis_client):
        """Test the response overwrites the marker and expires after a day"""
        redis_client.set = AsyncMock(return_value=True)

        assert await RedisStore.remember_response("bill", "abc", "{}") is True
        redis_client.set.assert_awaited_once_with("idempotency:bill:abc", "{}", ex=IDEMPOTENCY_TTL)

    @pytest.mark.asyncio
    async def test_reserve_free_key(self, redis_client):
        """Test a reservation is a short-lived SET NX of the pending marker"""
        redis_client.set = AsyncMock(return_value=True)

        assert await RedisStore.reserve("bill", "abc") is True
        redis_client.set.assert_awaited_once_with(
            "idempotency:bill:abc", PENDING_MARKER, ex=IDEMPOTENCY_PENDING_TTL, nx=True
        )

    @pytest.mark.asyncio
    async def test_reserve_taken_key(self, redis_client):
        redis_client.set = AsyncMock(return_value=None)

        assert await RedisStore.reserve("bill", "abc") is False

    @pytest.mark.asyncio
    async def test_reserve_when_redis_down(self, redis_client):
        """Test an outage lets the request through"""
        redis_client.set = AsyncMock(side_effect=ConnectionError("redis down"))

        assert await RedisStore.reserve("bill", "abc") is True

    @pytest.mark.asyncio
    async def test_release(self, redis_client):
        redis_client.delete = AsyncMock(return_value=1)

        await RedisStore.release("bill", "abc")

        redis_client.delete.assert_awaited_once_with("idempotency:bill:abc")

    @pytest.mark.asyncio
    async def test_ping_failure(self, redis_client):
        redis_client.ping = AsyncMock(side_effect=ConnectionError("redis down"))

        assert await RedisStore.ping() is False
