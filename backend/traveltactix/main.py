from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from starlette.staticfiles import StaticFiles

from .api import api_router
from .core.config import settings
from .core.errors import register_exception_handlers
from .db.init import ensure_indexes
from .db.mongo import MongoConnectionManager
from .db.redis import RedisConnectionManager
from .services.analytics import SessionTracker
from .services.recommendation_cache import RecommendationCache

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 애플리케이션 시작 시 커넥션과 공유 서비스 생성
    try:
        MongoConnectionManager.get_client()
        redis = RedisConnectionManager.get_client()
        app.state.recommendation_cache = RecommendationCache(redis, settings.recommendation_cache_ttl_seconds)
        app.state.session_tracker = SessionTracker()
        logger.info("데이터베이스/Redis 커넥션 초기화 완료")
    except Exception as exc:  # pragma: no cover - 초기 연결 실패 로깅
        logger.warning("초기 커넥션 생성 중 오류 발생: %s", exc)
    try:
        await ensure_indexes(MongoConnectionManager.get_database())
    except Exception as exc:  # pragma: no cover - 인덱스 생성 실패는 기동을 막지 않음
        logger.warning("인덱스 생성 실패: %s", exc)
    yield
    # 종료 시 공유 서비스와 커넥션 정리
    app.state.recommendation_cache = None
    await RedisConnectionManager.close()
    await MongoConnectionManager.close()


app = FastAPI(title=settings.project_name, lifespan=lifespan)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

app.include_router(api_router, prefix=settings.api_prefix)

frontend_dir = settings.frontend_static_dir
if frontend_dir.exists():
    app.mount("/static", StaticFiles(directory=str(frontend_dir), html=True), name="static")


@app.get("/", include_in_schema=False)
async def serve_frontend_index() -> FileResponse:
    index_path = Path(frontend_dir, "index.html")
    if not index_path.exists():
        raise HTTPException(status_code=404, detail="index.html not found")
    return FileResponse(index_path)


@app.get("/offline.html", include_in_schema=False)
async def offline_page() -> FileResponse:
    page = Path(frontend_dir, "offline.html")
    if not page.exists():
        raise HTTPException(status_code=404, detail="offline.html not found")
    return FileResponse(page)
