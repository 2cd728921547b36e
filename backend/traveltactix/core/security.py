"""
비밀번호 해시와 JWT 토큰

토큰은 항상 access/refresh 한 쌍으로 발급되며 같은 로그인 세션(session_id)에 묶입니다.
세션이 살아 있는지는 Redis 세션 저장소(services/sessions.py)에서 확인합니다.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal
from uuid import uuid4

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from .config import settings

TokenType = Literal["access", "refresh"]

pwd_context = CryptContext(schemes=["argon2", "bcrypt"], deprecated="auto")


class TokenError(HTTPException):
    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


@dataclass(frozen=True)
class TokenPair:
    session_id: str
    access_token: str
    access_jti: str
    refresh_token: str
    refresh_jti: str


def get_password_hash(password: str) -> str:
    """설정된 해시 스킴으로 비밀번호 해시 생성"""
    if settings.password_hash_scheme not in pwd_context.schemes():
        raise ValueError(f"Unsupported password hash scheme: {settings.password_hash_scheme}")
    return pwd_context.hash(password, scheme=settings.password_hash_scheme)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _lifetime(token_type: TokenType) -> timedelta:
    if token_type == "access":
        return timedelta(minutes=settings.access_token_expire_minutes)
    return timedelta(minutes=settings.refresh_token_expire_minutes)


def _encode(user_id: str, session_id: str, token_type: TokenType) -> tuple[str, str]:
    now = datetime.now(timezone.utc)
    jti = uuid4().hex
    payload: dict[str, Any] = {
        "sub": user_id,
        "sid": session_id,
        "type": token_type,
        "jti": jti,
        "iat": int(now.timestamp()),
        "exp": int((now + _lifetime(token_type)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm), jti


def issue_token_pair(user_id: str, session_id: str | None = None) -> TokenPair:
    """로그인(새 세션) 또는 refresh(기존 세션 유지) 시 토큰 한 쌍 발급"""
    session_id = session_id or uuid4().hex
    access_token, access_jti = _encode(user_id, session_id, "access")
    refresh_token, refresh_jti = _encode(user_id, session_id, "refresh")
    return TokenPair(session_id, access_token, access_jti, refresh_token, refresh_jti)


def decode_token(token: str, expected_type: TokenType) -> dict[str, Any]:
    """
    서명/만료를 검증하고 토큰 종류와 필수 클레임(sub, sid, jti)을 확인합니다.

    실패하면 모두 401 TokenError 로 올라갑니다.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:  # ExpiredSignatureError, DecodeError 포함
        raise TokenError(detail="Invalid or expired token") from exc

    if payload.get("type") != expected_type:
        raise TokenError(detail=f"Expected {expected_type} token")
    if not payload.get("sub"):
        raise TokenError(detail="Token has no user")
    if not payload.get("sid") or not payload.get("jti"):
        raise TokenError(detail="Token has no session")
    return payload
