"""
미션 검증 방식별 판정 로직

DB 나 외부 호출 없이 증거만으로 통과 여부와 안내 문구를 결정합니다.
사진 검증은 랜드마크 인식 결과(신뢰도)를 받아 판정합니다.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .geolocation import calculate_distance_km, is_valid_coordinate

QUIZ_PASS_PERCENT = 70
DEFAULT_RADIUS_KM = 0.5


@dataclass
class VerificationOutcome:
    verified: bool
    notes: str
    details: dict[str, Any] = field(default_factory=dict)


def quiz_pass_threshold(total: int) -> int:
    """전체 문항의 70% (올림) 이상 맞혀야 통과"""
    return math.ceil(total * QUIZ_PASS_PERCENT / 100)


def verify_location(
    latitude: float | None,
    longitude: float | None,
    target_latitude: float | None,
    target_longitude: float | None,
    radius_km: float = DEFAULT_RADIUS_KM,
) -> VerificationOutcome:
    if latitude is None or longitude is None:
        return VerificationOutcome(False, "Location coordinates are required")
    if not is_valid_coordinate(latitude, longitude):
        return VerificationOutcome(False, "Invalid coordinates")
    if target_latitude is None or target_longitude is None:
        return VerificationOutcome(False, "Mission has no target location")

    distance = calculate_distance_km(latitude, longitude, target_latitude, target_longitude)
    details = {"distance_km": round(distance, 3), "radius_km": radius_km}
    if distance <= radius_km:
        return VerificationOutcome(True, f"Location verified ({distance * 1000:.0f}m from target)", details)
    return VerificationOutcome(
        False,
        f"Too far from mission location ({distance:.2f}km away, must be within {radius_km}km)",
        details,
    )


def verify_photo(recognition: Mapping[str, Any] | None) -> VerificationOutcome:
    if not recognition:
        return VerificationOutcome(False, "Photo could not be analysed")
    confidence = recognition.get("confidence") or "low"
    name = recognition.get("landmark_name") or "Unknown landmark"
    details = {"landmark_name": name, "confidence": confidence}
    if confidence != "low":
        return VerificationOutcome(True, f"Photo verified: {name} ({confidence} confidence)", details)
    return VerificationOutcome(False, "Photo could not be verified with enough confidence", details)


def verify_checklist(items: Iterable[Mapping[str, Any]] | None) -> VerificationOutcome:
    items = list(items or [])
    total = len(items)
    if total == 0:
        return VerificationOutcome(False, "Checklist is empty", {"completed": 0, "total": 0})
    completed = sum(1 for item in items if item.get("completed"))
    details = {"completed": completed, "total": total}
    if completed == total:
        return VerificationOutcome(True, f"All {total} checklist items completed", details)
    return VerificationOutcome(False, f"Checklist incomplete ({completed}/{total})", details)


def verify_quiz(correct: int, total: int) -> VerificationOutcome:
    if total <= 0:
        return VerificationOutcome(False, "Quiz has no questions", {"correct": correct, "total": total})
    required = quiz_pass_threshold(total)
    details = {"correct": correct, "total": total, "required": required}
    if correct >= required:
        return VerificationOutcome(True, f"Quiz passed ({correct}/{total})", details)
    return VerificationOutcome(False, f"Quiz failed ({correct}/{total}, need {required})", details)
