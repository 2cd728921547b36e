from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    project_name: str = "TravelTacTix"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO")

    mongodb_uri: str = Field(default="mongodb://mongo:27017")
    mongodb_db: str = Field(default="traveltactix")

    redis_url: str = Field(default="redis://redis:6379/0")

    jwt_secret_key: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=15)
    refresh_token_expire_minutes: int = Field(default=60 * 24 * 7)

    password_hash_scheme: str = Field(default="argon2")

    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000,http://localhost")

    # OpenAI 호환 chat-completion 게이트웨이
    ai_gateway_url: str = Field(default="https://ai.gateway.lovable.dev/v1/chat/completions")
    ai_gateway_api_key: str = Field(default="", description="AI 게이트웨이 API 키 (환경 변수: AI_GATEWAY_API_KEY)")
    ai_model: str = Field(default="google/gemini-2.5-flash")
    ai_temperature: float = Field(default=0.8)
    ai_timeout_seconds: float = Field(default=60.0)

    # 함수별 요청 제한 (요청 수 / 윈도우 분)
    rate_limit_assistant: int = Field(default=30)
    rate_limit_recommendations: int = Field(default=15)
    rate_limit_landmark: int = Field(default=15)
    rate_limit_itinerary: int = Field(default=20)
    rate_limit_mission_recommendations: int = Field(default=15)
    rate_limit_smart_recommendations: int = Field(default=10)
    rate_limit_window_minutes: int = Field(default=60)

    recommendation_cache_ttl_seconds: int = Field(default=24 * 60 * 60)
    conversation_autosave_seconds: float = Field(default=2.0)

    verification_radius_km: float = Field(default=0.5)
    # None 이면 재시도 횟수 제한 없음
    mission_max_attempts: int | None = Field(default=None)

    offline_cache_name: str = Field(default="traveltactix-v2")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def frontend_static_dir(self) -> Path:
        return Path(__file__).resolve().parents[3] / "frontend"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
