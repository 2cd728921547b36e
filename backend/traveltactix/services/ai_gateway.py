"""
OpenAI 호환 chat-completion 게이트웨이 클라이언트

스트리밍 응답은 `data: {...}\\n\\n` 청크로 오며 `data: [DONE]` 으로 끝납니다.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, AsyncIterator, Iterable

import httpx
from fastapi import HTTPException, status

from ..core.config import settings

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"
_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def _headers() -> dict[str, str]:
    if not settings.ai_gateway_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="AI gateway is not configured",
        )
    return {
        "Authorization": f"Bearer {settings.ai_gateway_api_key}",
        "Content-Type": "application/json",
    }


def _raise_for_gateway_status(response: httpx.Response) -> None:
    if response.status_code == 429:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="AI rate limit exceeded")
    if response.status_code == 402:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail="AI credits exhausted")
    if response.status_code >= 400:
        logger.error("AI 게이트웨이 오류: %s", response.status_code)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"AI gateway error: {response.status_code}")


def build_request(
    messages: list[dict[str, Any]],
    *,
    temperature: float | None = None,
    stream: bool = False,
    json_mode: bool = False,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": settings.ai_model,
        "messages": messages,
        "temperature": settings.ai_temperature if temperature is None else temperature,
    }
    if stream:
        body["stream"] = True
    if json_mode:
        body["response_format"] = {"type": "json_object"}
    return body


async def complete(
    messages: list[dict[str, Any]],
    *,
    temperature: float | None = None,
    json_mode: bool = False,
) -> str:
    """한 번에 응답을 받아 assistant 메시지 본문을 돌려줍니다."""
    body = build_request(messages, temperature=temperature, json_mode=json_mode)
    try:
        async with httpx.AsyncClient(timeout=settings.ai_timeout_seconds) as client:
            response = await client.post(settings.ai_gateway_url, json=body, headers=_headers())
    except httpx.HTTPError as exc:
        logger.error("AI 게이트웨이 호출 실패: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="AI gateway unreachable") from exc

    _raise_for_gateway_status(response)
    try:
        return response.json()["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="No response from AI") from exc


async def stream(messages: list[dict[str, Any]], *, temperature: float | None = None) -> AsyncIterator[str]:
    """
    게이트웨이 SSE 스트림의 줄을 그대로 전달합니다.

    첫 줄을 받기 전에 상태 코드를 확인하므로 429/5xx 는 스트림 시작 전에 예외로 올라옵니다.
    """
    body = build_request(messages, temperature=temperature, stream=True)
    client = httpx.AsyncClient(timeout=settings.ai_timeout_seconds)
    try:
        request = client.build_request("POST", settings.ai_gateway_url, json=body, headers=_headers())
        response = await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        await client.aclose()
        logger.error("AI 게이트웨이 스트림 연결 실패: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="AI gateway unreachable") from exc
    except HTTPException:
        await client.aclose()
        raise

    if response.status_code >= 400:
        await response.aclose()
        await client.aclose()
        _raise_for_gateway_status(response)

    async def _lines() -> AsyncIterator[str]:
        try:
            async for line in response.aiter_lines():
                yield line
        finally:
            await response.aclose()
            await client.aclose()

    return _lines()


def parse_sse_lines(lines: Iterable[str]) -> tuple[list[str], bool]:
    """
    SSE 줄에서 delta content 조각을 추출합니다.

    Returns:
        (content 조각 목록, [DONE] 수신 여부)
    """
    chunks: list[str] = []
    for raw in lines:
        line = raw.rstrip("\r")
        if not line or line.startswith(":") or not line.startswith("data: "):
            continue
        payload = line[6:].strip()
        if payload == DONE_MARKER:
            return chunks, True
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError:
            continue
        choices = parsed.get("choices") or [{}]
        delta = (choices[0] or {}).get("delta") or {}
        content = delta.get("content")
        if content:
            chunks.append(content)
    return chunks, False


def extract_json(content: str) -> Any:
    """```json 코드 블록이 있으면 그 안의 JSON 을, 없으면 본문 전체를 파싱"""
    match = _CODE_FENCE.search(content)
    raw = match.group(1) if match else content.strip()
    return json.loads(raw)
