"""Health + service info endpoint tests."""

import pytest


@pytest.mark.asyncio
async def test_health_returns_ok(client):
    """Health endpoint reports server, database and realtime status."""
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["server"] == "ok"
    assert data["database"] == "ok"
    assert data["connections"] == 0
    assert "version" in data


@pytest.mark.asyncio
async def test_health_counts_realtime_clients(client, listener):
    resp = await client.get("/health")
    assert resp.json()["connections"] == 1


@pytest.mark.asyncio
async def test_health_degraded_without_database(client, app):
    """A broken database makes the service degraded, not down."""
    from eventhub.db.engine import get_db

    class BrokenSession:
        async def execute(self, *args, **kwargs):
            raise ConnectionError("database unreachable")

    async def broken_db():
        yield BrokenSession()

    app.dependency_overrides[get_db] = broken_db
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "degraded"
    assert resp.json()["database"].startswith("error:")


@pytest.mark.asyncio
async def test_api_info(client):
    resp = await client.get("/api")
    assert resp.status_code == 200
    assert resp.json()["websocket"] == "/ws"
