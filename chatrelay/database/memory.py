"""
In-memory Session Store

외부 의존성 없는 참조 구현입니다. 테스트와 단일 프로세스 개발 환경에서 사용합니다.
모든 연산은 이벤트 루프에 한 번 양보하여 실제 저장소의 I/O 중단 지점을 재현합니다.
"""

import asyncio
import copy
from typing import Dict, List, Optional

from chatrelay.core.errors import user_already_exists_error
from chatrelay.core.logging import get_logger, log_database_operation
from chatrelay.database.base import Criteria, Patch, SessionStore, serialize_patch
from chatrelay.models import Room, User

logger = get_logger(__name__)


def _matches(document: dict, criteria: Optional[Criteria]) -> bool:
    if not criteria:
        return True
    return all(document.get(key) == value for key, value in criteria.items())


class InMemorySessionStore(SessionStore):

    def __init__(self):
        # {userId: document}, {roomId: document}
        self.users: Dict[str, dict] = {}
        self.rooms: Dict[str, dict] = {}

    async def _suspend(self):
        await asyncio.sleep(0)

    async def find_user(self, criteria: Criteria) -> Optional[User]:
        await self._suspend()
        log_database_operation(logger, "find_one", "users", criteria=criteria)
        for document in self.users.values():
            if _matches(document, criteria):
                return User.model_validate(copy.deepcopy(document))
        return None

    async def find_room(self, criteria: Criteria) -> Optional[Room]:
        await self._suspend()
        log_database_operation(logger, "find_one", "rooms", criteria=criteria)
        for document in self.rooms.values():
            if _matches(document, criteria):
                return Room.model_validate(copy.deepcopy(document))
        return None

    async def list_users(self, criteria: Optional[Criteria] = None) -> List[User]:
        await self._suspend()
        return [
            User.model_validate(copy.deepcopy(document))
            for document in self.users.values()
            if _matches(document, criteria)
        ]

    async def list_rooms(self) -> List[Room]:
        await self._suspend()
        return [Room.model_validate(copy.deepcopy(document)) for document in self.rooms.values()]

    async def insert_user(self, user: User) -> User:
        await self._suspend()
        # userName 유니크 인덱스와 동일한 제약
        if any(document["userName"] == user.user_name for document in self.users.values()):
            raise user_already_exists_error()
        self.users[user.user_id] = user.to_document()
        log_database_operation(logger, "insert_one", "users", user_id=user.user_id)
        return user

    async def insert_room(self, room: Room) -> Room:
        await self._suspend()
        self.rooms[room.room_id] = room.to_document()
        log_database_operation(logger, "insert_one", "rooms", room_id=room.room_id)
        return room

    async def update_user(self, user_id: str, patch: Patch) -> None:
        await self._suspend()
        document = self.users.get(user_id)
        if document is not None:
            document.update(copy.deepcopy(serialize_patch(patch)))
        log_database_operation(logger, "update_one", "users", user_id=user_id)

    async def update_room(self, room_id: str, patch: Patch) -> None:
        await self._suspend()
        document = self.rooms.get(room_id)
        if document is not None:
            document.update(copy.deepcopy(serialize_patch(patch)))
        log_database_operation(logger, "update_one", "rooms", room_id=room_id)

    async def delete_room(self, criteria: Criteria) -> int:
        await self._suspend()
        for room_id, document in list(self.rooms.items()):
            if _matches(document, criteria):
                del self.rooms[room_id]
                return 1
        return 0

    async def delete_all_users(self) -> int:
        await self._suspend()
        count = len(self.users)
        self.users.clear()
        return count

    async def delete_all_rooms(self) -> int:
        await self._suspend()
        count = len(self.rooms)
        self.rooms.clear()
        return count

    async def ping(self) -> bool:
        return True
