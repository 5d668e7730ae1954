"""
Session Store 인터페이스

사용자/채팅방 문서의 영속 저장소를 추상화합니다. 조회 조건(criteria)과
변경 내용(patch)은 문서 필드명(camelCase)을 사용합니다.
모든 구현은 백엔드 장애를 StoreException으로 변환해야 합니다.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from chatrelay.models import Room, User

Criteria = Dict[str, Any]
Patch = Dict[str, Any]


class SessionStore(ABC):

    @abstractmethod
    async def find_user(self, criteria: Criteria) -> Optional[User]:
        ...

    @abstractmethod
    async def find_room(self, criteria: Criteria) -> Optional[Room]:
        ...

    @abstractmethod
    async def list_users(self, criteria: Optional[Criteria] = None) -> List[User]:
        ...

    @abstractmethod
    async def list_rooms(self) -> List[Room]:
        ...

    @abstractmethod
    async def insert_user(self, user: User) -> User:
        ...

    @abstractmethod
    async def insert_room(self, room: Room) -> Room:
        ...

    @abstractmethod
    async def update_user(self, user_id: str, patch: Patch) -> None:
        ...

    @abstractmethod
    async def update_room(self, room_id: str, patch: Patch) -> None:
        ...

    @abstractmethod
    async def delete_room(self, criteria: Criteria) -> int:
        """조건에 맞는 첫 번째 채팅방 삭제, 삭제된 개수 반환"""

    @abstractmethod
    async def delete_all_users(self) -> int:
        ...

    @abstractmethod
    async def delete_all_rooms(self) -> int:
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        return None


def serialize_patch(patch: Patch) -> Patch:
    """patch 값 안의 모델 객체를 문서 형태로 변환"""
    def convert(value):
        if hasattr(value, "to_document"):
            return value.to_document()
        if isinstance(value, list):
            return [convert(item) for item in value]
        return value

    return {key: convert(value) for key, value in patch.items()}
