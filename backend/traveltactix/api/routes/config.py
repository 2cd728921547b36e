from fastapi import APIRouter

from ...schemas import ClickRequest, ClickResolution, OfflineCachePolicy, StrategyResponse
from ...services import offline_cache

router = APIRouter()


@router.get("/offline", response_model=OfflineCachePolicy, summary="서비스 워커 오프라인 캐시 정책")
async def offline_config() -> OfflineCachePolicy:
    return OfflineCachePolicy(**offline_cache.offline_policy())


@router.get("/offline/strategy", response_model=StrategyResponse)
async def cache_strategy(url: str, method: str = "GET") -> StrategyResponse:
    return StrategyResponse(method=method.upper(), url=url, strategy=offline_cache.strategy_for(method, url))


@router.post("/offline/notification-click", response_model=ClickResolution)
async def notification_click(payload: ClickRequest) -> ClickResolution:
    return ClickResolution(**offline_cache.resolve_click_target(payload.action, payload.url, payload.open_windows))
