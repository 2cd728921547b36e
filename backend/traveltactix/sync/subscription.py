"""
테이블 변경 구독

구독은 async context manager 로 사용하며, 블록을 벗어나면 반드시 채널 구독을 해제합니다.
리스너가 연결 오류로 끝나도 해제는 그대로 진행되고, 오류는 error 에 남습니다.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .events import ChangeEvent, EventBus, channel_for, decode_message
from .invalidation import InvalidationMap

logger = logging.getLogger(__name__)

InvalidationHandler = Callable[[str], Awaitable[None]]


class ChangeSubscription:
    def __init__(
        self,
        bus: EventBus,
        invalidation_map: InvalidationMap,
        on_invalidate: InvalidationHandler,
        *,
        subscriber_id: str | None = None,
    ) -> None:
        self.bus = bus
        self.invalidation_map = invalidation_map
        self.on_invalidate = on_invalidate
        self.subscriber_id = subscriber_id
        self.error: BaseException | None = None
        self._pubsub = None
        self._listener: asyncio.Task | None = None

    @property
    def channels(self) -> list[str]:
        return sorted(channel_for(table) for table in self.invalidation_map.tables)

    @property
    def listening(self) -> bool:
        return self._listener is not None and not self._listener.done()

    async def dispatch(self, event: ChangeEvent) -> list[str]:
        """이벤트를 쿼리 키로 변환하고 키마다 무효화 핸들러를 한 번씩 호출"""
        keys = self.invalidation_map.keys_for(event, self.subscriber_id)
        for key in keys:
            try:
                await self.on_invalidate(key)
            except Exception:
                logger.exception("쿼리 무효화 처리 실패: %s", key)
        return keys

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                event = decode_message(message)
                if event is not None:
                    await self.dispatch(event)
        except Exception as exc:
            self.error = exc
            logger.warning("변경 구독 연결 종료: channels=%s error=%s", self.channels, exc)

    async def _stop_listener(self) -> None:
        listener, self._listener = self._listener, None
        if listener is None:
            return
        if not listener.done():
            listener.cancel()
        try:
            await listener
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> "ChangeSubscription":
        self._pubsub = self.bus.pubsub()
        await self._pubsub.subscribe(*self.channels)
        self._listener = asyncio.create_task(self._listen())
        return self

    async def __aexit__(self, *exc_info) -> None:
        pubsub, self._pubsub = self._pubsub, None
        try:
            await self._stop_listener()
        finally:
            if pubsub is not None:
                try:
                    await pubsub.unsubscribe()
                except Exception as exc:
                    logger.warning("구독 해제 실패: %s", exc)
                finally:
                    await pubsub.aclose()

    async def wait(self) -> None:
        """리스너가 끝날 때까지 대기 (연결이 끊기면 반환)"""
        if self._listener is not None:
            await asyncio.shield(self._listener)
