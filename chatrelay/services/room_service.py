"""
Room service layer

채팅방 생성/조회/삭제와 Global 채팅방 관리를 담당합니다.
"""

from typing import List, Optional

from chatrelay.core.config import settings
from chatrelay.core.errors import (
    reserved_room_name_error,
    room_not_found_error,
    user_not_found_error,
)
from chatrelay.core.logging import get_logger
from chatrelay.database.base import SessionStore
from chatrelay.models import Message, Room, RoomType, User
from chatrelay.services.relay_service import RoomLockRegistry

logger = get_logger(__name__)

# Global 채팅방 생성/가입 직렬화
global_room_locks = RoomLockRegistry()


async def join_global_room(store: SessionStore, user: User) -> Room:
    """
    Global 채팅방을 (없으면 만들고) 사용자를 가입시킵니다.

    Global 채팅방은 항상 하나만 존재합니다.
    """
    room_name = settings.global_room_name
    async with global_room_locks.get(room_name):
        room = await store.find_room({"roomName": room_name})
        if room is None:
            room = await store.insert_room(Room(room_name=room_name, type=RoomType.GROUP))
            logger.info(f"{room_name} room created: {room.room_id}")

        if not room.has_member(user.user_id):
            room.users.append(user.user_id)
            await store.update_room(room.room_id, {"users": room.users})

        if room.room_id not in user.rooms:
            user.rooms.append(room.room_id)
            await store.update_user(user.user_id, {"rooms": user.rooms})

    return room


async def create_room(
    store: SessionStore,
    room_name: str,
    room_type: RoomType = RoomType.PRIVATE,
    img_url: Optional[str] = None,
    user_id: Optional[str] = None,
    friend_id: Optional[str] = None,
) -> Room:
    """
    private/group 채팅방 생성.

    예약된 이름(Global)은 어떤 변경도 하기 전에 거부합니다. 그 외 이름의 중복은 허용합니다.
    """
    if room_name == settings.global_room_name:
        raise reserved_room_name_error(room_name)

    members: List[User] = []
    if user_id is not None:
        for member_id in dict.fromkeys(filter(None, [user_id, friend_id])):
            member = await store.find_user({"userId": member_id})
            if member is None:
                raise user_not_found_error(member_id)
            members.append(member)

    room = Room(
        room_name=room_name,
        type=room_type,
        img_url=img_url,
        users=[member.user_id for member in members],
    )
    await store.insert_room(room)

    for member in members:
        if room.room_id not in member.rooms:
            await store.update_user(member.user_id, {"rooms": member.rooms + [room.room_id]})

    logger.info(f"Room created: {room.room_id} ({room_name}, {room_type.value})")
    return room


async def get_room(store: SessionStore, room_id: str) -> Room:
    room = await store.find_room({"roomId": room_id})
    if room is None:
        raise room_not_found_error(room_id)
    return room


async def get_room_messages(store: SessionStore, room_id: str) -> List[Message]:
    room = await get_room(store, room_id)
    return room.messages


async def list_all_rooms(store: SessionStore) -> List[Room]:
    return await store.list_rooms()


async def delete_room_by_name(store: SessionStore, room_name: str) -> int:
    deleted = await store.delete_room({"roomName": room_name})
    logger.info(f"Room deleted by name: {room_name} (count={deleted})")
    return deleted


async def delete_all_rooms(store: SessionStore) -> int:
    deleted = await store.delete_all_rooms()
    logger.warning(f"All rooms deleted (count={deleted})")
    return deleted
