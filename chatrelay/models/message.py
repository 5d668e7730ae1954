from typing import Annotated, Any, Optional, Union

from pydantic import ConfigDict, Field

from chatrelay.models.base import DocumentModel

# 클라이언트 생성 ID: 문자열 또는 숫자(Date.now() 등), 받은 타입 그대로 보존
MessageId = Union[Annotated[str, Field(min_length=1)], int]


class Message(DocumentModel):
    """채팅 메시지

    id는 클라이언트가 생성하며 한 채팅방 안에서 고유합니다. 저장된 뒤에는
    수정/삭제되지 않습니다. 클라이언트가 보낸 추가 필드는 그대로 보존됩니다.
    id 비교는 타입까지 일치해야 같은 메시지로 봅니다. (1 과 "1"은 다른 ID)
    """
    model_config = ConfigDict(extra="allow")

    id: MessageId = Field(..., description="클라이언트 생성 메시지 ID")
    sender: Optional[str] = Field(None, description="보낸 사용자")
    body: Optional[Any] = Field(None, description="메시지 본문")
    timestamp: Optional[Any] = Field(None, description="클라이언트 타임스탬프")

    def same_id(self, other: "Message") -> bool:
        return type(self.id) is type(other.id) and self.id == other.id

    def to_document(self) -> dict:
        # 클라이언트가 보낸 필드만 그대로 전달/저장
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)
