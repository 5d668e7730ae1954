from typing import List, Optional

from chatrelay.core.errors import (
    incorrect_password_error,
    user_already_exists_error,
    user_not_found_error,
    user_not_registered_error,
)
from chatrelay.core.logging import get_logger, log_authentication_event
from chatrelay.database.base import SessionStore
from chatrelay.models import User
from chatrelay.services import room_service
from chatrelay.utils.auth import create_access_token, get_password_hash, verify_password

logger = get_logger(__name__)


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": user.user_id})


async def find_user_by_id(store: SessionStore, user_id: str) -> Optional[User]:
    return await store.find_user({"userId": user_id})


async def find_user_by_name(store: SessionStore, user_name: str) -> Optional[User]:
    return await store.find_user({"userName": user_name})


async def register(store: SessionStore, user_name: str, password: str) -> User:
    """
    사용자 등록 후 Global 채팅방에 가입시킵니다.

    Raises:
        ConflictException: 같은 사용자명이 이미 있는 경우
    """
    if await find_user_by_name(store, user_name):
        log_authentication_event(logger, "register", user_name=user_name, success=False)
        raise user_already_exists_error()

    user = User(user_name=user_name, password_hash=get_password_hash(password))
    await store.insert_user(user)
    await room_service.join_global_room(store, user)

    log_authentication_event(logger, "register", user_name=user_name, user_id=user.user_id)
    return user


async def authenticate(store: SessionStore, user_name: str, password: str) -> User:
    user = await find_user_by_name(store, user_name)
    if user is None:
        log_authentication_event(logger, "login", user_name=user_name, success=False)
        raise user_not_registered_error()

    if not verify_password(password, user.password_hash):
        log_authentication_event(logger, "login", user_name=user_name, success=False)
        raise incorrect_password_error()

    log_authentication_event(logger, "login", user_name=user_name, user_id=user.user_id)
    return user


async def get_user(store: SessionStore, user_id: str) -> User:
    user = await find_user_by_id(store, user_id)
    if user is None:
        raise user_not_found_error(user_id)
    return user


async def update_profile(
    store: SessionStore,
    user_id: str,
    profile_img_url: Optional[str] = None
) -> User:
    """프로필 수정 (전달된 필드만 변경)"""
    user = await get_user(store, user_id)

    patch = {}
    if profile_img_url is not None:
        patch["profileImgUrl"] = profile_img_url
    if patch:
        await store.update_user(user_id, patch)
        user = user.model_copy(update={"profile_img_url": profile_img_url})
    return user


async def list_users(store: SessionStore) -> List[User]:
    return await store.list_users()


async def delete_all_users(store: SessionStore) -> int:
    deleted = await store.delete_all_users()
    logger.warning(f"All users deleted (count={deleted})")
    return deleted
