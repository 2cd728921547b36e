"""헬스체크 (프로세스 생존 / MongoDB·Redis 연결 준비 상태)"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from ...dependencies import get_mongo_db, get_redis

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", summary="애플리케이션 헬스체크")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready", summary="MongoDB / Redis 연결 확인")
async def readiness(
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    redis: Redis = Depends(get_redis),
) -> JSONResponse:
    checks: dict[str, str] = {}
    try:
        await db.command("ping")
        checks["mongodb"] = "ok"
    except Exception as exc:
        logger.warning("MongoDB ping 실패: %s", exc)
        checks["mongodb"] = "unavailable"
    try:
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        logger.warning("Redis ping 실패: %s", exc)
        checks["redis"] = "unavailable"

    ready = all(value == "ok" for value in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ok" if ready else "degraded", "checks": checks},
    )
