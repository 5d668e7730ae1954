from typing import List

from fastapi import APIRouter, Depends

from chatrelay.api.dependencies import get_current_user, get_presence_tracker, get_session_store
from chatrelay.database.base import SessionStore
from chatrelay.models import User
from chatrelay.schemas.room import StatusMessage
from chatrelay.schemas.user import OnlineStatusUpdate, ProfileUpdateRequest, UserProfile
from chatrelay.services import auth_service
from chatrelay.services.presence_service import PresenceTracker

router = APIRouter(tags=["Users"])


def to_profile(user: User) -> UserProfile:
    return UserProfile.model_validate(user.model_dump())


@router.get("/users", response_model=List[UserProfile])
async def list_users(store: SessionStore = Depends(get_session_store)) -> List[UserProfile]:
    """전체 사용자 목록"""
    users = await auth_service.list_users(store)
    return [to_profile(user) for user in users]


@router.get("/onlineUsers", response_model=List[UserProfile])
async def list_online_users(
    presence: PresenceTracker = Depends(get_presence_tracker)
) -> List[UserProfile]:
    """온라인 플래그가 켜진 사용자 목록"""
    users = await presence.online_users()
    return [to_profile(user) for user in users]


@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user)) -> UserProfile:
    return to_profile(current_user)


@router.put("/profile", response_model=UserProfile)
async def update_profile(
    profile_data: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store)
) -> UserProfile:
    """프로필 수정"""
    user = await auth_service.update_profile(
        store,
        current_user.user_id,
        profile_img_url=profile_data.profile_img_url
    )
    return to_profile(user)


@router.put("/users/updateOnline/{user_id}", response_model=StatusMessage)
async def update_online(
    user_id: str,
    status_data: OnlineStatusUpdate,
    current_user: User = Depends(get_current_user),
    presence: PresenceTracker = Depends(get_presence_tracker)
) -> StatusMessage:
    """온라인 플래그 변경 (브로드캐스트 없음)"""
    await presence.set_online(user_id, status_data.online)
    return StatusMessage(msg="updated successfully")


@router.delete("/users", response_model=StatusMessage)
async def delete_all_users(store: SessionStore = Depends(get_session_store)) -> StatusMessage:
    """관리용 전체 사용자 초기화"""
    deleted = await auth_service.delete_all_users(store)
    return StatusMessage(msg=f"successfully deleted {deleted} users")
