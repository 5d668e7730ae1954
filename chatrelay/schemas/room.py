from typing import List, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from chatrelay.models import Message, RoomType
from chatrelay.schemas.user import CamelModel


class RoomCreate(CamelModel):
    """채팅방 생성 요청 스키마"""
    room_name: str = Field(..., min_length=1, max_length=100, description="채팅방 이름")
    img_url: Optional[str] = Field(None, description="채팅방 이미지 URL")
    user_id: Optional[str] = Field(None, description="생성한 사용자 ID")
    friend_id: Optional[str] = Field(None, description="상대방 사용자 ID")
    type: RoomType = Field(default=RoomType.PRIVATE, description="group | private")


class RoomResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    room_id: str
    room_name: str
    type: RoomType
    img_url: Optional[str] = None
    users: List[str] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)


class MessageListUpdate(CamelModel):
    """메시지 목록 일괄 동기화 요청"""
    message_list: List[Message] = Field(default_factory=list)


class MessageListUpdateResponse(CamelModel):
    msg: str
    list: Optional[List[Message]] = None


class StatusMessage(CamelModel):
    msg: str
