import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ..core.config import settings

logger = logging.getLogger(__name__)


class MongoConnectionManager:
    client: AsyncIOMotorClient | None = None

    @classmethod
    def get_client(cls) -> AsyncIOMotorClient:
        if cls.client is None:
            # 저장되는 datetime 은 모두 UTC 기준
            cls.client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
        return cls.client

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        return cls.get_client()[settings.mongodb_db]

    @classmethod
    async def close(cls) -> None:
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("MongoDB 커넥션 종료")
