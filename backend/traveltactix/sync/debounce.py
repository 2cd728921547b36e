"""
연속 입력을 일정 시간 조용해진 뒤 한 번의 쓰기로 합치는 디바운서

새 입력이 들어오면 대기 중인 타이머를 취소하고 다시 시작합니다.
쓰기는 한 번에 하나씩만 실행되며, flush() 는 진행 중인 쓰기가 끝난 뒤 남은 값을 저장합니다.
종료 전에 저장이 필요하면 호출 측에서 flush() 를 불러야 합니다.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Debouncer(Generic[T]):
    def __init__(self, write: Callable[[T], Awaitable[Any]], delay: float) -> None:
        self._write = write
        self.delay = delay
        self._pending: T | None = None
        self._has_pending = False
        self._timer: asyncio.Task | None = None
        self._write_lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        return self._has_pending

    @property
    def writing(self) -> bool:
        return self._write_lock.locked()

    def push(self, value: T) -> None:
        self._pending = value
        self._has_pending = True
        self._cancel_timer()
        self._timer = asyncio.create_task(self._fire_later())

    async def _fire_later(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        await self._run()

    async def _run(self) -> None:
        async with self._write_lock:
            if not self._has_pending:
                return
            value = self._pending
            self._pending = None
            self._has_pending = False
            try:
                await self._write(value)
            except Exception:
                logger.exception("디바운스 쓰기 실패")

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def flush(self) -> None:
        self._cancel_timer()
        await self._run()

    def cancel(self) -> None:
        self._cancel_timer()
        self._pending = None
        self._has_pending = False
