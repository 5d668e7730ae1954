from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(BaseModel):
    """회원가입 요청 스키마"""
    username: str = Field(..., min_length=1, max_length=50, description="사용자명")
    password: str = Field(..., min_length=1, description="비밀번호")


class LoginRequest(BaseModel):
    """로그인 요청 스키마"""
    username: str = Field(..., description="사용자명")
    password: str = Field(..., description="비밀번호")


class Token(CamelModel):
    jwt_token: str = Field(..., description="액세스 토큰")


class UserProfile(CamelModel):
    """사용자 프로필 스키마 (비밀번호 해시 제외)"""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    user_id: str
    user_name: str
    online: bool = False
    profile_img_url: Optional[str] = None
    rooms: List[str] = Field(default_factory=list)


class ProfileUpdateRequest(CamelModel):
    profile_img_url: Optional[str] = Field(None, max_length=2048, description="프로필 이미지 URL")


class OnlineStatusUpdate(BaseModel):
    """온라인 상태 업데이트 스키마"""
    online: bool = Field(..., description="온라인 상태")
