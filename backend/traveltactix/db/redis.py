import logging

from redis.asyncio import Redis

from ..core.config import settings

logger = logging.getLogger(__name__)


class RedisConnectionManager:
    client: Redis | None = None

    @classmethod
    def get_client(cls) -> Redis:
        if cls.client is None:
            # pub/sub 구독 커넥션이 오래 유지되므로 주기적으로 상태 확인
            cls.client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                health_check_interval=30,
            )
        return cls.client

    @classmethod
    async def close(cls) -> None:
        if cls.client:
            await cls.client.aclose()
            cls.client = None
            logger.info("Redis 커넥션 종료")
