from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..sync.events import ChangeType
from ..sync.mutation import MutationDispatcher
from . import activity as activity_service
from . import profiles as profile_service

logger = logging.getLogger(__name__)

STREAKS_COL = "user_streaks"

DAILY_LOGIN_XP = 10
# (연속 일수 이상, 추가 XP)
STREAK_BONUSES = ((7, 20), (30, 50), (100, 100))
MILESTONES = (7, 30, 100)


@dataclass
class StreakUpdate:
    current_streak: int
    longest_streak: int
    total_logins: int
    already_checked_in: bool


def advance_streak(
    last_login: date | None,
    today: date,
    current_streak: int = 0,
    longest_streak: int = 0,
    total_logins: int = 0,
) -> StreakUpdate:
    """어제 접속했으면 연속 일수를 이어가고, 그 외에는 1로 초기화"""
    if last_login == today:
        return StreakUpdate(current_streak, longest_streak, total_logins, True)
    if last_login == today - timedelta(days=1):
        streak = current_streak + 1
    else:
        streak = 1
    return StreakUpdate(streak, max(longest_streak, streak), total_logins + 1, False)


def daily_xp(streak: int) -> int:
    xp = DAILY_LOGIN_XP
    for threshold, bonus in STREAK_BONUSES:
        if streak >= threshold:
            xp += bonus
    return xp


def _normalize(doc: dict[str, Any] | None, user_id: str) -> dict[str, Any]:
    doc = doc or {}
    last_login = doc.get("last_login_date")
    return {
        "user_id": user_id,
        "current_streak": doc.get("current_streak") or 0,
        "longest_streak": doc.get("longest_streak") or 0,
        "last_login_date": date.fromisoformat(last_login) if last_login else None,
        "total_logins": doc.get("total_logins") or 0,
    }


async def get_streak(db: AsyncIOMotorDatabase, user_id: str) -> dict[str, Any]:
    doc = await db[STREAKS_COL].find_one({"user_id": user_id})
    return _normalize(doc, user_id)


async def record_login(
    dispatcher: MutationDispatcher, user_id: str, today: date | None = None
) -> dict[str, Any]:
    """
    하루 한 번 접속 체크인

    같은 날 두 번째 호출은 변경 없이 already_checked_in=True 를 돌려줍니다.
    XP 지급과 마일스톤 활동 기록은 best-effort 입니다.
    """
    db = dispatcher.db
    today = today or datetime.now(timezone.utc).date()
    existing = await db[STREAKS_COL].find_one({"user_id": user_id})
    current = _normalize(existing, user_id)
    update = advance_streak(
        current["last_login_date"],
        today,
        current["current_streak"],
        current["longest_streak"],
        current["total_logins"],
    )
    if update.already_checked_in:
        return {"streak": current, "already_checked_in": True, "xp_earned": 0, "milestone": None}

    # 같은 날 동시 요청은 last_login_date 조건으로 한 건만 반영
    try:
        doc = await db[STREAKS_COL].find_one_and_update(
            {"user_id": user_id, "last_login_date": {"$ne": today.isoformat()}},
            {
                "$set": {
                    "current_streak": update.current_streak,
                    "longest_streak": update.longest_streak,
                    "last_login_date": today.isoformat(),
                    "total_logins": update.total_logins,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
            upsert=existing is None,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        # 첫 체크인이 동시에 들어와 다른 요청이 먼저 문서를 만든 경우
        doc = None
    if doc is None:
        return {"streak": await get_streak(db, user_id), "already_checked_in": True, "xp_earned": 0, "milestone": None}
    await dispatcher.publish(STREAKS_COL, ChangeType.UPDATE if existing else ChangeType.INSERT, doc)

    xp = daily_xp(update.current_streak)
    try:
        await profile_service.increment_xp(db, user_id, xp, dispatcher.bus)
    except Exception as exc:
        logger.warning("접속 XP 지급 실패: user=%s (%s)", user_id, exc)
        xp = 0

    milestone = update.current_streak if update.current_streak in MILESTONES else None
    if milestone:
        try:
            await activity_service.post_activity(
                dispatcher,
                user_id,
                "streak_milestone",
                f"{milestone}-day streak!",
                metadata={"streak": milestone},
            )
        except Exception as exc:
            logger.warning("연속 접속 활동 기록 실패: user=%s (%s)", user_id, exc)

    return {"streak": _normalize(doc, user_id), "already_checked_in": False, "xp_earned": xp, "milestone": milestone}
