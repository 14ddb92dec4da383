"""Health endpoints."""

import pytest
from httpx import AsyncClient

from billing_cache.core.config import get_settings


async def test_health_returns_ok(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_cache_health_with_backend(client: AsyncClient, runtime) -> None:
    response = await client.get("/health/cache")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "backend_available": True,
        "pending_recomputations": 0,
        "recompute_namespaces": [],
    }


async def test_cache_health_unavailable_backend(client: AsyncClient, runtime) -> None:
    await runtime.cache.disconnect()
    response = await client.get("/health/cache")
    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "unavailable"
    assert body["backend_available"] is False


async def test_cache_health_disabled_by_configuration(
    client: AsyncClient, runtime, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("REDIS_ENABLED", "false")
    get_settings.cache_clear()
    await runtime.cache.disconnect()

    response = await client.get("/health/cache")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


async def test_cache_health_without_runtime(client: AsyncClient) -> None:
    response = await client.get("/health/cache")
    assert response.status_code == 503
