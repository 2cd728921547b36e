"""
AI 추천 결과 캐시 (기능 종류 + 사용자 ID 키, 기본 24시간 TTL)

앱 시작 시 생성되어 app.state 에 보관되고, 로그아웃 시 해당 사용자 항목을 비웁니다.
만료된 항목은 읽는 시점에 삭제되고 miss(None)로 처리됩니다.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

CACHE_PREFIX = "ai:recommendations:"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


class RecommendationCache:
    def __init__(
        self,
        redis: Redis,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    @staticmethod
    def key(feature: str, user_id: str | None = None) -> str:
        return f"{CACHE_PREFIX}{feature}:{user_id or 'anonymous'}"

    async def get(self, feature: str, user_id: str | None = None) -> Any | None:
        key = self.key(feature, user_id)
        raw = await self.redis.get(key)
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            stored_at = float(entry["timestamp"])
        except (ValueError, KeyError, TypeError):
            logger.warning("손상된 추천 캐시 항목 삭제: %s", key)
            await self.redis.delete(key)
            return None
        if self.clock() - stored_at > self.ttl_seconds:
            await self.redis.delete(key)
            return None
        return entry.get("data")

    async def set(self, feature: str, data: Any, user_id: str | None = None) -> None:
        entry = {"data": data, "timestamp": self.clock(), "user_id": user_id}
        # Redis 만료는 읽히지 않는 항목 정리용, 만료 판정은 저장 시각 기준
        await self.redis.set(self.key(feature, user_id), json.dumps(entry, default=str), ex=self.ttl_seconds + 60)

    async def clear(self, feature: str | None = None, user_id: str | None = None) -> int:
        if feature is not None:
            return await self.redis.delete(self.key(feature, user_id))
        pattern = f"{CACHE_PREFIX}*:{user_id}" if user_id else f"{CACHE_PREFIX}*"
        removed = 0
        async for key in self.redis.scan_iter(match=pattern):
            removed += await self.redis.delete(key)
        return removed

    async def clear_user(self, user_id: str) -> int:
        removed = await self.clear(user_id=user_id)
        if removed:
            logger.info("추천 캐시 비움: user=%s (%d건)", user_id, removed)
        return removed
