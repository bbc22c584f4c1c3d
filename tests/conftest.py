"""Pytest fixtures and configuration"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

from splitbill.database import (build_engine, build_session_factory,
                                create_tables, get_db)
from splitbill.main import app
from splitbill.services.change_feed import ChangeFeed
from splitbill.services.redis_store import (PENDING_MARKER, RedisStore,
                                            idempotency_key)


@pytest_asyncio.fixture(scope="function")
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh SQLite database for each test.
    Tables are created up front and the file is discarded afterwards.
    """
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'splitbill_test.db'}",
        poolclass=NullPool,  # No connection pooling for tests
        echo=False,
    )
    await create_tables(engine)

    session_factory = build_session_factory(engine)
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def published_events(monkeypatch) -> list:
    """Capture change events instead of sending them to Redis"""
    events = []

    async def fake_publish(event):
        events.append(event)
        return True

    monkeypatch.setattr(ChangeFeed, "publish", fake_publish)
    return events


@pytest.fixture
def cache_store(monkeypatch) -> dict:
    """In-memory stand-in for the Redis idempotency cache"""
    store = {}

    async def fake_recall(scope, key):
        return store.get(idempotency_key(scope, key))

    async def fake_reserve(scope, key, ttl=None):
        name = idempotency_key(scope, key)
        if name in store:
            return False
        store[name] = PENDING_MARKER
        return True

    async def fake_remember(scope, key, payload, ttl=None):
        store[idempotency_key(scope, key)] = payload
        return True

    async def fake_release(scope, key):
        store.pop(idempotency_key(scope, key), None)

    monkeypatch.setattr(RedisStore, "recall_response", AsyncMock(side_effect=fake_recall))
    monkeypatch.setattr(RedisStore, "reserve", AsyncMock(side_effect=fake_reserve))
    monkeypatch.setattr(RedisStore, "remember_response", AsyncMock(side_effect=fake_remember))
    monkeypatch.setattr(RedisStore, "release", AsyncMock(side_effect=fake_release))
    return store


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, published_events: list, cache_store: dict
) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def dinner_bill_data() -> dict:
    """Burger and two fries, $2 tax, 20% tip"""
    return {
        "name": "Friday dinner",
        "items": [
            {"name": "Burger", "price": "10.00", "quantity": 1},
            {"name": "Fries", "price": "5.00", "quantity": 2},
        ],
        "tax": "2.00",
        "tip_percent": "20",
        "creator_name": "Alex",
    }


@pytest_asyncio.fixture
async def dinner_bill(client: AsyncClient, dinner_bill_data: dict) -> dict:
    """Create the dinner bill and return its full snapshot"""
    response = await client.post("/api/v1/bills", json=dinner_bill_data)
    assert response.status_code == 201
    created = response.json()

    snapshot = await client.get(f"/api/v1/bills/{created['id']}")
    assert snapshot.status_code == 200
    data = snapshot.json()
    data["creator_participant_id"] = created["creator_participant_id"]
    return data

