from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import Field

from chatrelay.models.base import DocumentModel
from chatrelay.models.message import Message


class RoomType(str, Enum):
    GROUP = "group"
    PRIVATE = "private"


class Room(DocumentModel):
    room_id: str = Field(default_factory=lambda: str(uuid4()))
    room_name: str
    type: RoomType = RoomType.GROUP
    img_url: Optional[str] = None
    users: List[str] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.users

    def __repr__(self):
        return f"<Room(room_id={self.room_id}, room_name={self.room_name}, type={self.type.value})>"
