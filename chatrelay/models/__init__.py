from .message import Message
from .room import Room, RoomType
from .user import User

__all__ = ["Message", "Room", "RoomType", "User"]
