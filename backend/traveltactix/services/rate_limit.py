"""
사용자 + 함수 단위 요청 제한 (Redis 고정 윈도우 카운터)

윈도우의 첫 요청에서 카운터 키에 만료 시간을 설정하고, 이후 요청은 INCR 로 셉니다.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Response, status
from pydantic import BaseModel
from redis.asyncio import Redis

from ..core.auth import get_current_user
from ..core.config import settings
from ..dependencies import get_redis
from ..schemas.user import UserPublic

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit:"


class RateLimitResult(BaseModel):
    allowed: bool
    current_count: int
    max_allowed: int
    reset_at: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.max_allowed - self.current_count)

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.max_allowed),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at.isoformat(),
        }


class RateLimitExceeded(HTTPException):
    def __init__(self, result: RateLimitResult):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                f"Rate limit exceeded: {result.current_count}/{result.max_allowed} requests used. "
                f"Try again after {result.reset_at.isoformat()}"
            ),
            headers=result.headers(),
        )
        self.result = result


def _key(user_id: str, function_name: str) -> str:
    return f"{RATE_LIMIT_PREFIX}{function_name}:{user_id}"


async def check_rate_limit(
    redis: Redis,
    user_id: str,
    function_name: str,
    max_requests: int,
    window_minutes: int,
) -> RateLimitResult:
    key = _key(user_id, function_name)
    window_seconds = window_minutes * 60
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window_seconds)
    ttl = await redis.ttl(key)
    if ttl is None or ttl < 0:
        # 만료 설정이 누락된 카운터가 영구히 남지 않도록 복구
        await redis.expire(key, window_seconds)
        ttl = window_seconds
    reset_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
    return RateLimitResult(
        allowed=count <= max_requests,
        current_count=count,
        max_allowed=max_requests,
        reset_at=reset_at,
    )


def rate_limited(function_name: str, max_requests: int, window_minutes: int | None = None):
    """
    요청 제한 FastAPI 의존성 생성기

    허용되면 응답에 X-RateLimit-* 헤더를 붙이고, 초과하면 429 를 올립니다.
    """
    window = window_minutes or settings.rate_limit_window_minutes

    async def dependency(
        response: Response,
        current_user: UserPublic = Depends(get_current_user),
        redis: Redis = Depends(get_redis),
    ) -> RateLimitResult:
        result = await check_rate_limit(redis, current_user.id, function_name, max_requests, window)
        if not result.allowed:
            logger.info("요청 제한 초과: user=%s function=%s", current_user.id, function_name)
            raise RateLimitExceeded(result)
        response.headers["X-RateLimit-Limit"] = str(result.max_allowed)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return result

    return dependency
