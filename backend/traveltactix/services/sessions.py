"""로그인 세션 저장소 (Redis hash, refresh 토큰 수명과 같은 TTL)"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from redis.asyncio import Redis

from ..core.config import settings
from ..core.security import TokenError, TokenPair

SESSION_KEY_PREFIX = "auth:session:"
REFRESH_KEY_PREFIX = "auth:refresh:"


def session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def refresh_key(jti: str) -> str:
    return f"{REFRESH_KEY_PREFIX}{jti}"


def session_ttl() -> int:
    return max(settings.refresh_token_expire_minutes * 60, settings.access_token_expire_minutes * 60, 3600)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _write(redis: Redis, session_id: str, fields: dict[str, Any]) -> None:
    key = session_key(session_id)
    await redis.hset(key, mapping={name: "" if value is None else str(value) for name, value in fields.items()})
    await redis.expire(key, session_ttl())


async def create_session(
    redis: Redis,
    tokens: TokenPair,
    *,
    user_id: str,
    user_agent: str | None = None,
    ip: str | None = None,
) -> dict[str, Any]:
    now = _now_iso()
    session = {
        "session_id": tokens.session_id,
        "user_id": user_id,
        "status": "active",
        "created_at": now,
        "last_seen": now,
        "access_jti": tokens.access_jti,
        "refresh_jti": tokens.refresh_jti,
        "ip": ip,
        "user_agent": user_agent,
    }
    await _write(redis, tokens.session_id, session)
    await redis.set(refresh_key(tokens.refresh_jti), user_id, ex=session_ttl())
    return session


async def get_session(redis: Redis, session_id: str) -> dict[str, Any] | None:
    data = await redis.hgetall(session_key(session_id))
    return data or None


async def touch_session(
    redis: Redis,
    session_id: str,
    *,
    ip: str | None = None,
    user_agent: str | None = None,
) -> None:
    updates: dict[str, Any] = {"last_seen": _now_iso()}
    if ip is not None:
        updates["ip"] = ip
    if user_agent is not None:
        updates["user_agent"] = user_agent
    await _write(redis, session_id, updates)


async def rotate_tokens(redis: Redis, tokens: TokenPair, *, user_id: str, old_refresh_jti: str) -> None:
    await redis.delete(refresh_key(old_refresh_jti))
    await redis.set(refresh_key(tokens.refresh_jti), user_id, ex=session_ttl())
    await _write(
        redis,
        tokens.session_id,
        {"access_jti": tokens.access_jti, "refresh_jti": tokens.refresh_jti, "last_seen": _now_iso()},
    )


async def revoke_session(redis: Redis, session_id: str, *, reason: str | None = None) -> dict[str, Any] | None:
    session = await get_session(redis, session_id)
    if session is None:
        return None
    await _write(redis, session_id, {"status": "revoked", "revoked_at": _now_iso(), "revoked_reason": reason})
    if session.get("refresh_jti"):
        await redis.delete(refresh_key(session["refresh_jti"]))
    return session


async def require_active_session(redis: Redis, claims: dict[str, Any], *, jti_field: str) -> dict[str, Any]:
    """
    토큰이 가리키는 세션이 살아 있고, 그 세션의 최신 토큰인지 확인

    refresh 로 새 토큰이 발급되면 이전 access/refresh 토큰은 모두 superseded 로 거절됩니다.
    """
    session = await get_session(redis, claims["sid"])
    if session is None or session.get("status") != "active":
        raise TokenError(detail="Session expired or logged out")
    if session.get("user_id") != claims["sub"] or session.get(jti_field) != claims["jti"]:
        raise TokenError(detail="Token has been superseded")
    return session
