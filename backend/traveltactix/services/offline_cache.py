"""
오프라인 캐시 정책 (서비스 워커 계약)

- GET 이 아닌 요청은 캐시를 거치지 않음 (bypass)
- API 요청은 항상 네트워크 (network-only)
- 그 외 정적 자원과 페이지 이동은 cache-first, 페이지 이동 실패 시 offline.html
"""
from __future__ import annotations

from typing import Any, Sequence

from ..core.config import settings
from .notifications import DEFAULT_PUSH_ACTIONS, DEFAULT_PUSH_TAG, DEFAULT_PUSH_TITLE

OFFLINE_FALLBACK = "/offline.html"
PRECACHE_URLS = ("/", OFFLINE_FALLBACK, "/logo.png", "/manifest.json")
NETWORK_ONLY_PATTERNS = ("/functions/", "/api/", "supabase.co")


def strategy_for(method: str, url: str) -> str:
    if method.upper() != "GET":
        return "bypass"
    if any(pattern in url for pattern in NETWORK_ONLY_PATTERNS):
        return "network-only"
    return "cache-first"


def resolve_click_target(action: str | None, url: str | None, open_windows: Sequence[str]) -> dict[str, Any]:
    """
    알림 클릭 처리

    dismiss 는 아무것도 하지 않고, 대상 URL 을 포함한 창이 있으면 그 창에 포커스, 없으면 새 창을 엽니다.
    """
    if action == "dismiss":
        return {"action": "none", "url": None, "window_index": None}
    target = url or "/"
    for index, window_url in enumerate(open_windows):
        if target in window_url:
            return {"action": "focus", "url": window_url, "window_index": index}
    return {"action": "open", "url": target, "window_index": None}


def offline_policy() -> dict[str, Any]:
    return {
        "cache_name": settings.offline_cache_name,
        "precache_urls": list(PRECACHE_URLS),
        "network_only_patterns": list(NETWORK_ONLY_PATTERNS),
        "offline_fallback": OFFLINE_FALLBACK,
        "default_push_title": DEFAULT_PUSH_TITLE,
        "default_push_tag": DEFAULT_PUSH_TAG,
        "default_push_actions": list(DEFAULT_PUSH_ACTIONS),
    }
