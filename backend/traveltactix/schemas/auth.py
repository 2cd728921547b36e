from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .user import UserPublic


class SignupResponse(BaseModel):
    user: UserPublic


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserPublic


class RefreshRequest(BaseModel):
    refresh_token: str


class RefreshResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LogoutResponse(BaseModel):
    message: str = "Logged out"
    cleared_cache_entries: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
