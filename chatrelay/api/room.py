from typing import List

from fastapi import APIRouter, Depends

from chatrelay.api.dependencies import get_current_user, get_relay_service, get_session_store
from chatrelay.database.base import SessionStore
from chatrelay.models import Message, Room, User
from chatrelay.schemas.room import (
    MessageListUpdate,
    MessageListUpdateResponse,
    RoomCreate,
    RoomResponse,
    StatusMessage,
)
from chatrelay.services import membership_service, room_service
from chatrelay.services.relay_service import RelayService

router = APIRouter(tags=["Rooms"])


def to_response(room: Room) -> RoomResponse:
    return RoomResponse.model_validate(room.model_dump())


@router.get("/rooms", response_model=List[RoomResponse])
async def get_my_rooms(
    current_user: User = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store)
) -> List[RoomResponse]:
    """현재 사용자가 속한 채팅방 목록 (Membership Index)"""
    rooms = await membership_service.rooms_for_user(store, current_user.user_id)
    return [to_response(room) for room in rooms]


@router.get("/roomsList", response_model=List[RoomResponse])
async def get_all_rooms(store: SessionStore = Depends(get_session_store)) -> List[RoomResponse]:
    rooms = await room_service.list_all_rooms(store)
    return [to_response(room) for room in rooms]


@router.post("/rooms/private", response_model=RoomResponse)
async def create_room(
    room_data: RoomCreate,
    store: SessionStore = Depends(get_session_store)
) -> RoomResponse:
    """
    private/group 채팅방 생성

    - **roomName**: 채팅방 이름 (Global은 예약됨)
    - **userId**, **friendId**: 멤버 (userId가 없으면 멤버 없이 생성)
    """
    room = await room_service.create_room(
        store,
        room_name=room_data.room_name,
        room_type=room_data.type,
        img_url=room_data.img_url,
        user_id=room_data.user_id,
        friend_id=room_data.friend_id,
    )
    return to_response(room)


@router.get("/rooms/{room_id}/messages", response_model=List[Message])
async def get_room_messages(
    room_id: str,
    store: SessionStore = Depends(get_session_store)
) -> List[Message]:
    return await room_service.get_room_messages(store, room_id)


@router.put("/rooms/{room_id}/updateMessageList", response_model=MessageListUpdateResponse)
async def update_message_list(
    room_id: str,
    update: MessageListUpdate,
    relay: RelayService = Depends(get_relay_service)
) -> MessageListUpdateResponse:
    """클라이언트 메시지 목록으로 채팅방 로그 동기화"""
    merged = await relay.update_message_list(room_id, update.message_list)
    if merged is None:
        return MessageListUpdateResponse(msg="nothing to update")
    return MessageListUpdateResponse(msg="updated successfully", list=merged)


@router.delete("/rooms/{room_name}", response_model=StatusMessage)
async def delete_room(
    room_name: str,
    store: SessionStore = Depends(get_session_store)
) -> StatusMessage:
    await room_service.delete_room_by_name(store, room_name)
    return StatusMessage(msg=f"deleted roomName: {room_name}")


@router.delete("/rooms", response_model=StatusMessage)
async def delete_all_rooms(store: SessionStore = Depends(get_session_store)) -> StatusMessage:
    """관리용 전체 채팅방 초기화"""
    deleted = await room_service.delete_all_rooms(store)
    return StatusMessage(msg=f"successfully deleted {deleted} rooms")
