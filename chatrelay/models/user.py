from typing import List, Optional
from uuid import uuid4

from pydantic import Field

from chatrelay.models.base import DocumentModel


class User(DocumentModel):
    user_id: str = Field(default_factory=lambda: str(uuid4()))
    user_name: str
    password_hash: str
    online: bool = False
    profile_img_url: Optional[str] = None
    rooms: List[str] = Field(default_factory=list)

    def __repr__(self):
        return f"<User(user_id={self.user_id}, user_name={self.user_name})>"
