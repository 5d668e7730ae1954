"""라이브 채널 이벤트 페이로드 스키마"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from chatrelay.models import Message


class ClientEnvelope(BaseModel):
    """클라이언트 → 서버 메시지: {"event": ..., "data": ...}"""
    event: str = Field(..., min_length=1)
    data: Any = None


class RoomRef(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    room_id: str = Field(..., alias="roomId", min_length=1)


class SendMessagePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Message
    room_id: str = Field(..., alias="roomId", min_length=1)


class PresencePayload(BaseModel):
    """userConnect / userDisconnect 프로필 (추가 필드 보존)"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)

    def profile(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
