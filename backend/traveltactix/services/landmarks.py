from __future__ import annotations

import json
import logging
from typing import Any

from . import ai_gateway

logger = logging.getLogger(__name__)

CONFIDENCE_LEVELS = ("high", "medium", "low")

LANDMARK_PROMPT = (
    "You are an expert in world landmarks and travel destinations. "
    "Identify the landmark in this photo. Respond ONLY with JSON of the form "
    '{"landmark_name": string|null, "city": string|null, "country": string|null, '
    '"confidence": "high"|"medium"|"low", "description": string, "historical_facts": [string]}. '
    'If you cannot identify a landmark, use null for landmark_name and "low" for confidence.'
)


def _image_url(image_base64: str) -> str:
    if image_base64.startswith("data:"):
        return image_base64
    return f"data:image/jpeg;base64,{image_base64}"


def build_messages(image_base64: str, latitude: float | None = None, longitude: float | None = None) -> list[dict]:
    text = LANDMARK_PROMPT
    if latitude is not None and longitude is not None:
        text += f" The photo was taken near latitude {latitude}, longitude {longitude}."
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": _image_url(image_base64)}},
            ],
        }
    ]


def normalize_result(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raw = {}
    confidence = str(raw.get("confidence") or "low").lower()
    if confidence not in CONFIDENCE_LEVELS:
        confidence = "low"
    facts = raw.get("historical_facts") or []
    return {
        "landmark_name": raw.get("landmark_name"),
        "city": raw.get("city"),
        "country": raw.get("country"),
        "confidence": confidence,
        "description": raw.get("description"),
        "historical_facts": [str(fact) for fact in facts] if isinstance(facts, list) else [],
    }


async def recognize_landmark(
    image_base64: str, latitude: float | None = None, longitude: float | None = None
) -> dict[str, Any]:
    """
    사진 속 랜드마크를 인식합니다.

    응답을 JSON 으로 해석할 수 없으면 confidence=low 결과를 돌려줍니다.
    """
    content = await ai_gateway.complete(build_messages(image_base64, latitude, longitude), temperature=0.2)
    try:
        parsed = ai_gateway.extract_json(content)
    except (json.JSONDecodeError, ValueError):
        logger.warning("랜드마크 인식 응답 파싱 실패")
        return normalize_result({"description": content.strip() or None})
    return normalize_result(parsed)
