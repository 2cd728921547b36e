"""비동기 작업 하나를 data/loading/error 상태로 감싸는 헬퍼"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, TypeVar

from fastapi import HTTPException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncOperation(Generic[T]):
    def __init__(
        self,
        *,
        on_success: Callable[[T], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        error_message: str | None = None,
    ) -> None:
        self.data: T | None = None
        self.loading = False
        self.error: str | None = None
        self.on_success = on_success
        self.on_error = on_error
        self.error_message = error_message

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T | None:
        self.loading = True
        self.error = None
        try:
            result = await operation()
        except Exception as exc:
            self.data = None
            self.loading = False
            message = exc.detail if isinstance(exc, HTTPException) else str(exc)
            self.error = message or self.error_message or "An error occurred"
            logger.warning("비동기 작업 실패: %s", self.error)
            if self.on_error:
                self.on_error(exc)
            return None

        self.data = result
        self.loading = False
        self.error = None
        if self.on_success:
            self.on_success(result)
        return result

    def reset(self) -> None:
        self.data = None
        self.loading = False
        self.error = None
