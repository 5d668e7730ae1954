from typing import List, Optional
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from chatrelay.core.config import settings
from chatrelay.core.errors import StoreException, user_already_exists_error
from chatrelay.database.base import Criteria, Patch, SessionStore, serialize_patch
from chatrelay.models import Room, User

# MongoDB client and database
client: Optional[AsyncIOMotorClient] = None
database: Optional[AsyncIOMotorDatabase] = None

logger = logging.getLogger(__name__)

# 응답 문서에서 제외할 Mongo 내부 필드
PROJECTION = {"_id": False}


async def connect_to_mongo():
    """Create database connection"""
    global client, database
    try:
        client = AsyncIOMotorClient(
            settings.mongo_url,
            maxPoolSize=10,
            minPoolSize=1,
            maxIdleTimeMS=30000,
            waitQueueTimeoutMS=5000,
        )
        database = client[settings.mongodb_db_name]
        logger.info("Connected to MongoDB")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        raise


async def init_mongodb() -> "MongoSessionStore":
    """Connect and make sure the collection indexes exist"""
    await connect_to_mongo()
    store = MongoSessionStore(database)
    try:
        await store.ensure_indexes()
        logger.info("MongoDB initialized successfully")
    except PyMongoError as e:
        logger.error(f"Failed to initialize MongoDB: {e}")
        raise
    return store


async def check_mongo_connection() -> bool:
    """Check MongoDB connection"""
    try:
        if client:
            await client.admin.command('ping')
            return True
        return False
    except Exception as e:
        logger.error(f"MongoDB connection check failed: {e}")
        return False


async def close_mongo_connection():
    """Close MongoDB connection"""
    global client, database
    if client:
        client.close()
        client = None
        database = None
        logger.info("MongoDB connection closed")


class MongoSessionStore(SessionStore):
    """`users` / `rooms` 컬렉션 기반 Session Store"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.users = db["users"]
        self.rooms = db["rooms"]

    async def ensure_indexes(self):
        await self.users.create_index([("userId", ASCENDING)], unique=True)
        await self.users.create_index([("userName", ASCENDING)], unique=True)
        await self.rooms.create_index([("roomId", ASCENDING)], unique=True)
        await self.rooms.create_index([("roomName", ASCENDING)])

    async def find_user(self, criteria: Criteria) -> Optional[User]:
        try:
            document = await self.users.find_one(criteria, PROJECTION)
        except PyMongoError as e:
            logger.error(f"find_user failed: {e}")
            raise StoreException("find_user") from e
        return User.model_validate(document) if document else None

    async def find_room(self, criteria: Criteria) -> Optional[Room]:
        try:
            document = await self.rooms.find_one(criteria, PROJECTION)
        except PyMongoError as e:
            logger.error(f"find_room failed: {e}")
            raise StoreException("find_room") from e
        return Room.model_validate(document) if document else None

    async def list_users(self, criteria: Optional[Criteria] = None) -> List[User]:
        try:
            documents = await self.users.find(criteria or {}, PROJECTION).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"list_users failed: {e}")
            raise StoreException("list_users") from e
        return [User.model_validate(document) for document in documents]

    async def list_rooms(self) -> List[Room]:
        try:
            documents = await self.rooms.find({}, PROJECTION).to_list(length=None)
        except PyMongoError as e:
            logger.error(f"list_rooms failed: {e}")
            raise StoreException("list_rooms") from e
        return [Room.model_validate(document) for document in documents]

    async def insert_user(self, user: User) -> User:
        try:
            await self.users.insert_one(user.to_document())
        except DuplicateKeyError as e:
            # userName 유니크 인덱스 위반 (동시 가입)
            raise user_already_exists_error() from e
        except PyMongoError as e:
            logger.error(f"insert_user failed: {e}")
            raise StoreException("insert_user") from e
        return user

    async def insert_room(self, room: Room) -> Room:
        try:
            await self.rooms.insert_one(room.to_document())
        except PyMongoError as e:
            logger.error(f"insert_room failed: {e}")
            raise StoreException("insert_room") from e
        return room

    async def update_user(self, user_id: str, patch: Patch) -> None:
        try:
            await self.users.update_one({"userId": user_id}, {"$set": serialize_patch(patch)})
        except PyMongoError as e:
            logger.error(f"update_user failed for {user_id}: {e}")
            raise StoreException("update_user") from e

    async def update_room(self, room_id: str, patch: Patch) -> None:
        try:
            await self.rooms.update_one({"roomId": room_id}, {"$set": serialize_patch(patch)})
        except PyMongoError as e:
            logger.error(f"update_room failed for {room_id}: {e}")
            raise StoreException("update_room") from e

    async def delete_room(self, criteria: Criteria) -> int:
        try:
            result = await self.rooms.delete_one(criteria)
        except PyMongoError as e:
            logger.error(f"delete_room failed: {e}")
            raise StoreException("delete_room") from e
        return result.deleted_count

    async def delete_all_users(self) -> int:
        try:
            result = await self.users.delete_many({})
        except PyMongoError as e:
            raise StoreException("delete_all_users") from e
        return result.deleted_count

    async def delete_all_rooms(self) -> int:
        try:
            result = await self.rooms.delete_many({})
        except PyMongoError as e:
            raise StoreException("delete_all_rooms") from e
        return result.deleted_count

    async def ping(self) -> bool:
        return await check_mongo_connection()

    async def close(self) -> None:
        await close_mongo_connection()
