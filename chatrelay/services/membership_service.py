"""
Membership Index

Session Store에서 사용자가 속한 채팅방을 계산합니다. 캐시하지 않고
요청마다 다시 계산합니다.
"""

from typing import List

from chatrelay.database.base import SessionStore
from chatrelay.models import Room


async def rooms_for_user(store: SessionStore, user_id: str) -> List[Room]:
    """users 목록에 user_id가 포함된 모든 채팅방"""
    rooms = await store.list_rooms()
    return [room for room in rooms if room.has_member(user_id)]


async def is_member(store: SessionStore, user_id: str, room_id: str) -> bool:
    room = await store.find_room({"roomId": room_id})
    return room is not None and room.has_member(user_id)
