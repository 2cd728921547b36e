"""
인증 흐름 테스트
- 회원가입 / 로그인 / 토큰 갱신 / 로그아웃
"""
import httpx
import pytest

from backend.traveltactix.core.security import TokenError, decode_token, issue_token_pair


@pytest.mark.asyncio
async def test_signup_creates_user_and_profile(client: httpx.AsyncClient, fake_db):
    payload = {"email": "asha@example.com", "password": "securepassword123", "full_name": "Asha"}

    response = await client.post("/api/auth/signup", json=payload)

    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "asha@example.com"
    assert user["full_name"] == "Asha"
    profiles = fake_db["profiles"].docs
    assert len(profiles) == 1
    assert profiles[0]["user_id"] == user["id"]
    assert profiles[0]["total_xp"] == 0


@pytest.mark.asyncio
async def test_signup_duplicate_email(client: httpx.AsyncClient):
    payload = {"email": "dup@example.com", "password": "password123", "full_name": "Dup"}

    first = await client.post("/api/auth/signup", json=payload)
    second = await client.post("/api/auth/signup", json=payload)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json() == {"error": "Email already registered"}


@pytest.mark.asyncio
async def test_login_wrong_password(client: httpx.AsyncClient, register):
    await register(email="wrong@example.com")

    response = await client.post("/api/auth/login", json={"email": "wrong@example.com", "password": "nope12345"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid email or password"}


@pytest.mark.asyncio
async def test_me_returns_current_user(client: httpx.AsyncClient, register):
    user = await register(email="me@example.com", full_name="Me")

    response = await client.get("/api/auth/me", headers=user["headers"])

    assert response.status_code == 200
    assert response.json()["id"] == user["user_id"]
    assert response.json()["full_name"] == "Me"


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(client: httpx.AsyncClient, register):
    user = await register(email="rotate@example.com")
    old_refresh = user["tokens"]["refresh_token"]

    response = await client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
    assert response.status_code == 200
    rotated = response.json()
    assert rotated["refresh_token"] != old_refresh

    # 이전 access / refresh 토큰은 더 이상 쓸 수 없음
    stale = await client.get("/api/auth/me", headers=user["headers"])
    assert stale.status_code == 401
    assert stale.json() == {"error": "Token has been superseded"}
    reused = await client.post("/api/auth/refresh", json={"refresh_token": old_refresh})
    assert reused.status_code == 401

    fresh = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {rotated['access_token']}"})
    assert fresh.status_code == 200


@pytest.mark.asyncio
async def test_logout_revokes_session_and_clears_recommendation_cache(
    client: httpx.AsyncClient, register, fake_redis
):
    user = await register(email="bye@example.com")
    mine = f"ai:recommendations:hidden_gems:all:any:{user['user_id']}"
    other = "ai:recommendations:hidden_gems:all:any:someone-else"
    await fake_redis.set(mine, '{"data": [], "timestamp": 0}')
    await fake_redis.set(other, '{"data": [], "timestamp": 0}')

    response = await client.post("/api/auth/logout", headers=user["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Logged out"
    assert body["cleared_cache_entries"] == 1
    assert mine not in fake_redis.store
    assert other in fake_redis.store

    after = await client.get("/api/auth/me", headers=user["headers"])
    assert after.status_code == 401
    assert after.json() == {"error": "Session expired or logged out"}


def test_token_pair_shares_one_session():
    tokens = issue_token_pair("user-1")

    access = decode_token(tokens.access_token, "access")
    refresh = decode_token(tokens.refresh_token, "refresh")

    assert access["sid"] == refresh["sid"] == tokens.session_id
    assert (access["jti"], refresh["jti"]) == (tokens.access_jti, tokens.refresh_jti)
    assert issue_token_pair("user-1", session_id=tokens.session_id).session_id == tokens.session_id


def test_token_type_is_enforced():
    tokens = issue_token_pair("user-1")

    with pytest.raises(TokenError) as exc:
        decode_token(tokens.refresh_token, "access")
    assert exc.value.detail == "Expected access token"
    with pytest.raises(TokenError):
        decode_token("not-a-jwt", "refresh")


@pytest.mark.asyncio
async def test_tokens_cannot_be_swapped(client: httpx.AsyncClient, register):
    user = await register(email="swap@example.com")
    tokens = user["tokens"]

    as_bearer = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert as_bearer.status_code == 401
    assert as_bearer.json() == {"error": "Expected access token"}

    as_refresh = await client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert as_refresh.status_code == 401
    assert as_refresh.json() == {"error": "Expected refresh token"}


@pytest.mark.asyncio
async def test_deleted_account_is_rejected(client: httpx.AsyncClient, register, fake_db):
    user = await register(email="gone@example.com")
    fake_db["users"].docs.clear()

    response = await client.get("/api/auth/me", headers=user["headers"])

    assert response.status_code == 401
    assert response.json() == {"error": "Account no longer exists"}
