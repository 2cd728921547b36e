from fastapi import APIRouter, Body, Cookie, Depends, Request, Response, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from ...core.auth import get_current_token, get_current_user
from ...core.config import settings
from ...core.security import TokenError, decode_token, issue_token_pair
from ...dependencies import get_mongo_db, get_recommendation_cache, get_redis
from ...schemas import (
    LoginResponse,
    LogoutResponse,
    RefreshRequest,
    RefreshResponse,
    SignupResponse,
    UserCreate,
    UserLogin,
    UserPublic,
)
from ...services import sessions as session_service
from ...services import users as user_service
from ...services.recommendation_cache import RecommendationCache

router = APIRouter()


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="refresh_token",
        value=token,
        httponly=True,
        secure=False,
        samesite="strict",
        max_age=settings.refresh_token_expire_minutes * 60,
        path=f"{settings.api_prefix}/auth",
    )


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(payload: UserCreate, db: AsyncIOMotorDatabase = Depends(get_mongo_db)) -> SignupResponse:
    user = await user_service.create_user(db, payload)
    return SignupResponse(user=user)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: UserLogin,
    request: Request,
    response: Response,
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    redis: Redis = Depends(get_redis),
) -> LoginResponse:
    user_doc = await user_service.authenticate_user(db, payload)
    user = user_service.document_to_user(user_doc)

    tokens = issue_token_pair(user.id)
    await session_service.create_session(
        redis,
        tokens,
        user_id=user.id,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    _set_refresh_cookie(response, tokens.refresh_token)
    return LoginResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token, user=user)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    response: Response,
    payload: RefreshRequest | None = Body(default=None),
    refresh_cookie: str | None = Cookie(default=None, alias="refresh_token"),
    redis: Redis = Depends(get_redis),
) -> RefreshResponse:
    token = payload.refresh_token if payload else refresh_cookie
    if not token:
        raise TokenError(detail="Missing refresh token")

    claims = decode_token(token, "refresh")
    if not await redis.exists(session_service.refresh_key(claims["jti"])):
        raise TokenError(detail="Refresh token expired or revoked")
    await session_service.require_active_session(redis, claims, jti_field="refresh_jti")

    # 같은 세션에서 토큰 한 쌍을 새로 발급하고 이전 쌍은 무효화
    tokens = issue_token_pair(claims["sub"], session_id=claims["sid"])
    await session_service.rotate_tokens(redis, tokens, user_id=claims["sub"], old_refresh_jti=claims["jti"])
    _set_refresh_cookie(response, tokens.refresh_token)
    return RefreshResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    claims: dict = Depends(get_current_token),
    redis: Redis = Depends(get_redis),
    cache: RecommendationCache = Depends(get_recommendation_cache),
) -> LogoutResponse:
    await session_service.revoke_session(redis, claims["sid"], reason="logout")
    # 로그아웃한 여행자의 AI 추천 캐시만 비움
    cleared = await cache.clear_user(claims["sub"])
    response.delete_cookie(key="refresh_token", path=f"{settings.api_prefix}/auth")
    return LogoutResponse(cleared_cache_entries=cleared)


@router.get("/me", response_model=UserPublic)
async def me(current_user: UserPublic = Depends(get_current_user)) -> UserPublic:
    return current_user
