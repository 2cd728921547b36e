import logging
from datetime import datetime, timezone

from bson import ObjectId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ..core.security import get_password_hash, verify_password
from ..schemas.user import UserCreate, UserLogin, UserPublic
from . import profiles as profile_service

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


async def find_user_by_email(db: AsyncIOMotorDatabase, email: str) -> dict | None:
    return await db[USERS_COLLECTION].find_one({"email": email})


async def get_user_by_id(db: AsyncIOMotorDatabase, user_id: str) -> dict | None:
    try:
        object_id = ObjectId(user_id)
    except Exception as exc:  # pragma: no cover - 잘못된 ObjectId
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user id") from exc
    return await db[USERS_COLLECTION].find_one({"_id": object_id})


def document_to_user(doc: dict) -> UserPublic:
    return UserPublic(
        id=str(doc["_id"]),
        email=doc["email"],
        full_name=doc.get("full_name", ""),
        created_at=doc.get("created_at", datetime.now(timezone.utc)),
    )


async def create_user(db: AsyncIOMotorDatabase, payload: UserCreate) -> UserPublic:
    existing = await find_user_by_email(db, payload.email)
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    now = datetime.now(timezone.utc)
    user_doc = {
        "email": payload.email,
        "password_hash": get_password_hash(payload.password),
        "full_name": payload.full_name,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = await db[USERS_COLLECTION].insert_one(user_doc)
    except DuplicateKeyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered") from exc
    user_doc["_id"] = result.inserted_id
    await profile_service.create_profile(db, str(result.inserted_id), payload.full_name)
    logger.info("신규 사용자 등록: %s", result.inserted_id)
    return document_to_user(user_doc)


async def authenticate_user(db: AsyncIOMotorDatabase, payload: UserLogin) -> dict:
    user_doc = await find_user_by_email(db, payload.email)
    if not user_doc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    if not verify_password(payload.password, user_doc.get("password_hash", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    return user_doc
