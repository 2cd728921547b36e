"""
변경 이벤트를 쿼리 키 무효화로 바꿔 SSE 로 전달

클라이언트는 받은 query_key 에 해당하는 데이터를 다시 조회합니다.
구독 연결이 끊기면 error 이벤트를 보내고 스트림을 닫으므로, 클라이언트가 다시 연결해야 합니다.
"""
import asyncio
import json
import logging
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ...core.auth import get_current_user
from ...dependencies import get_event_bus
from ...schemas import UserPublic
from ...sync.events import EventBus
from ...sync.invalidation import default_invalidation_map
from ...sync.subscription import ChangeSubscription

logger = logging.getLogger(__name__)

router = APIRouter()

KEEPALIVE_SECONDS = 15.0
CLOSED_EVENT = "event: error\ndata: " + json.dumps({"error": "Subscription closed"}) + "\n\n"


async def invalidation_events(
    subscription: ChangeSubscription,
    queue: "asyncio.Queue[str]",
    is_disconnected: Callable[[], Awaitable[bool]],
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """구독 중인 subscription 에서 무효화 키를 SSE 프레임으로 내보냄"""
    ended = asyncio.create_task(subscription.wait())
    getter: asyncio.Task | None = None
    try:
        while not await is_disconnected():
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, ended}, timeout=keepalive, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield f"data: {json.dumps({'query_key': getter.result()})}\n\n"
                continue
            getter.cancel()
            if ended in done:
                logger.info("구독 리스너 종료로 스트림을 닫음: error=%s", subscription.error)
                yield CLOSED_EVENT
                return
            yield ": keepalive\n\n"
    finally:
        if getter is not None:
            getter.cancel()
        ended.cancel()


@router.get("/stream", summary="쿼리 무효화 이벤트 스트림 (text/event-stream)")
async def invalidation_stream(
    request: Request,
    keys: list[str] | None = Query(default=None, description="구독할 쿼리 키 템플릿 (예: friends:{user_id})"),
    current_user: UserPublic = Depends(get_current_user),
    bus: EventBus = Depends(get_event_bus),
) -> StreamingResponse:
    invalidation_map = default_invalidation_map()
    if keys:
        invalidation_map = invalidation_map.only(keys)

    async def events():
        queue: asyncio.Queue[str] = asyncio.Queue()
        subscription = ChangeSubscription(bus, invalidation_map, queue.put, subscriber_id=current_user.id)
        async with subscription:
            yield ": connected\n\n"
            async for frame in invalidation_events(subscription, queue, request.is_disconnected):
                yield frame
        logger.debug("무효화 스트림 종료: user=%s", current_user.id)

    return StreamingResponse(events(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})
