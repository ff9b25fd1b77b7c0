"""Tests for combined MCP + REST runtime."""

import httpx
import pytest

from neuralearn.combined_server import create_app
from neuralearn.config import Settings

from test_rest_server import _FakeBroker


@pytest.mark.asyncio
async def test_combined_server_exposes_mcp_and_rest_routes():
    """Combined app serves both MCP and REST paths."""
    app = create_app(broker=_FakeBroker(), config=Settings())
    paths = {getattr(route, "path", None) for route in app.routes}
    assert "/mcp" in paths
    assert "/api/v1/route-question" in paths
    assert "/api/v1/chat/{node_id}" in paths
    assert "/openapi.json" in paths

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        created = await client.post("/api/v1/topics", json={"title": "Calculus"})
        assert created.status_code == 200


@pytest.mark.asyncio
async def test_health_reports_broker_status_and_interfaces():
    app = create_app(broker=_FakeBroker(), config=Settings())
    health_routes = [r for r in app.routes if getattr(r, "path", None) == "/health"]
    assert len(health_routes) == 1

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        health = await client.get("/health")

    assert health.status_code == 200
    body = health.json()
    assert body["status"] == "healthy"
    assert body["graph_store"] is True
    assert body["interfaces"] == {"mcp": "/mcp", "rest": "/api/v1"}
