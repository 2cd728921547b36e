from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from .db.mongo import MongoConnectionManager
from .db.redis import RedisConnectionManager
from .services.recommendation_cache import RecommendationCache
from .sync.events import EventBus
from .sync.mutation import MutationDispatcher


async def get_mongo_db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    db = MongoConnectionManager.get_database()
    yield db


async def get_redis() -> AsyncGenerator[Redis, None]:
    # 싱글톤으로 유지하므로 요청 종료 시 닫지 않음
    yield RedisConnectionManager.get_client()


async def get_event_bus(redis: Redis = Depends(get_redis)) -> EventBus:
    return EventBus(redis)


async def get_dispatcher(
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    bus: EventBus = Depends(get_event_bus),
) -> MutationDispatcher:
    return MutationDispatcher(db, bus)


def get_recommendation_cache(request: Request) -> RecommendationCache:
    """lifespan 에서 생성한 캐시 서비스 (없으면 현재 Redis 로 생성)"""
    cache = getattr(request.app.state, "recommendation_cache", None)
    if cache is None:
        cache = RecommendationCache(RedisConnectionManager.get_client())
        request.app.state.recommendation_cache = cache
    return cache
