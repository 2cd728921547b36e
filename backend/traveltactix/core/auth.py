"""
요청 인증 의존성

Bearer access 토큰 → 활성 세션 확인 → 여행자(users) 문서 조회 순서로 검증합니다.
실패는 모두 401 이며 공통 오류 형식({"error": ...})으로 응답됩니다.
"""
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from ..dependencies import get_mongo_db, get_redis
from ..schemas.user import UserPublic
from ..services import sessions as session_service
from ..services.users import document_to_user, get_user_by_id
from .security import TokenError, decode_token

http_bearer = HTTPBearer(auto_error=False)


async def get_current_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    redis: Redis = Depends(get_redis),
) -> dict:
    if credentials is None:
        raise TokenError(detail="Missing authorization")

    claims = decode_token(credentials.credentials, "access")
    await session_service.require_active_session(redis, claims, jti_field="access_jti")
    await session_service.touch_session(
        redis,
        claims["sid"],
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return claims


async def get_current_user(
    claims: dict = Depends(get_current_token),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> UserPublic:
    doc = await get_user_by_id(db, claims["sub"])
    if not doc:
        # 세션은 살아 있지만 계정이 삭제된 경우
        raise TokenError(detail="Account no longer exists")
    return document_to_user(doc)
