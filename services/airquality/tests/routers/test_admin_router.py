"""
Router tests for health, stats, cache clearing and history cleanup.
"""

from __future__ import annotations

import pytest

from services.airquality.errors import InputError


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    body = resp.json()
    assert resp.status_code == 200
    assert body["data"]["status"] == "healthy"
    assert body["data"]["database"] is True
    assert body["data"]["sources"] == ["historical_store", "live_api", "legacy_api"]


@pytest.mark.asyncio
async def test_stats(client, mock_catalog):
    mock_catalog.stats.return_value = {"cache": {"hits": 1}, "reputation": {"flaggedCount": 0}}
    resp = await client.get("/api/stats")
    assert resp.json()["data"] == {"cache": {"hits": 1}, "reputation": {"flaggedCount": 0}}


@pytest.mark.asyncio
async def test_clear_all_caches(client, mock_catalog):
    mock_catalog.invalidate_cache.return_value = {"sources": 2, "validation": 3}
    resp = await client.post("/api/cache/clear")
    assert resp.json()["data"] == {"scope": "all", "cleared": {"sources": 2, "validation": 3}, "total": 5}
    mock_catalog.invalidate_cache.assert_called_once_with(None)


@pytest.mark.asyncio
async def test_clear_one_scope(client, mock_catalog):
    mock_catalog.invalidate_cache.return_value = {"descriptions": 4}
    resp = await client.post("/api/cache/clear", json={"scope": "descriptions"})
    assert resp.json()["data"]["scope"] == "descriptions"
    mock_catalog.invalidate_cache.assert_called_once_with("descriptions")


@pytest.mark.asyncio
async def test_unknown_scope_is_400(client, mock_catalog):
    mock_catalog.invalidate_cache.side_effect = InputError("Unknown cache scope: x")
    resp = await client.post("/api/cache/clear", json={"scope": "x"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_history_cleanup(client, mock_catalog):
    mock_catalog.cleanup_history.return_value = 12
    resp = await client.post("/api/history/cleanup", json={"retentionDays": 14})
    assert resp.json()["data"] == {"deleted": 12, "retentionDays": 14}
    mock_catalog.cleanup_history.assert_awaited_once_with(14)


@pytest.mark.asyncio
async def test_unknown_route_is_404_envelope(client):
    resp = await client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
