from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorDatabase


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db["users"].create_index("email", unique=True)
    await db["profiles"].create_index("user_id", unique=True)
    await db["profiles"].create_index([("total_xp", -1)])
    await db["places"].create_index([("city", 1), ("category", 1)])
    await db["missions"].create_index([("is_active", 1), ("created_at", -1)])
    await db["user_missions"].create_index([("user_id", 1), ("mission_id", 1)], unique=True)
    await db["friendships"].create_index([("user_id", 1), ("friend_id", 1)], unique=True)
    await db["friendships"].create_index([("friend_id", 1), ("status", 1)])
    await db["messages"].create_index([("sender_id", 1), ("receiver_id", 1), ("created_at", -1)])
    await db["messages"].create_index([("receiver_id", 1), ("is_read", 1)])
    await db["activity_feed"].create_index([("created_at", -1)])
    await db["activity_feed"].create_index([("user_id", 1), ("created_at", -1)])
    await db["user_streaks"].create_index("user_id", unique=True)
    await db["user_favorites"].create_index([("user_id", 1), ("place_id", 1)], unique=True)
    await db["user_notifications"].create_index([("user_id", 1), ("created_at", -1)])
    await db["ai_conversations"].create_index([("user_id", 1), ("updated_at", -1)])
    await db["offline_queue"].create_index([("user_id", 1), ("synced", 1)])
    await db["user_sessions"].create_index("session_id", unique=True)
