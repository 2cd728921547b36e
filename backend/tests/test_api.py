"""
API 스모크 테스트
- 헬스체크, 오프라인 정책, 공통 오류 응답 형식
"""
import httpx
import pytest


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_readiness_reports_each_store(client: httpx.AsyncClient):
    response = await client.get("/api/health/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "checks": {"mongodb": "ok", "redis": "ok"}}


@pytest.mark.asyncio
async def test_readiness_degrades_when_redis_is_down(client: httpx.AsyncClient, fake_redis, monkeypatch):
    async def unreachable():
        raise ConnectionError("redis down")

    monkeypatch.setattr(fake_redis, "ping", unreachable)

    response = await client.get("/api/health/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "degraded", "checks": {"mongodb": "ok", "redis": "unavailable"}}


@pytest.mark.asyncio
async def test_offline_policy_is_public(client: httpx.AsyncClient):
    response = await client.get("/api/config/offline")
    assert response.status_code == 200
    data = response.json()
    assert data["cache_name"] == "traveltactix-v2"
    assert "/offline.html" in data["precache_urls"]
    assert data["offline_fallback"] == "/offline.html"
    assert "/api/" in data["network_only_patterns"]


@pytest.mark.asyncio
async def test_missing_token_uses_error_envelope(client: httpx.AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"error": "Missing authorization"}


@pytest.mark.asyncio
async def test_invalid_body_returns_400(client: httpx.AsyncClient):
    response = await client.post(
        "/api/auth/signup", json={"email": "not-an-email", "password": "short", "full_name": ""}
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid input"}


@pytest.mark.asyncio
async def test_unknown_place_id_is_rejected(client: httpx.AsyncClient, register):
    user = await register()
    response = await client.get("/api/places/not-an-object-id", headers=user["headers"])
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid place id"
