"""
API Dependencies

FastAPI dependency functions for the session store, relay services and authentication
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from chatrelay.core.errors import invalid_token_error
from chatrelay.database import get_store
from chatrelay.database.base import SessionStore
from chatrelay.models import User
from chatrelay.services import auth_service
from chatrelay.services.presence_service import PresenceTracker
from chatrelay.services.relay_service import RelayService
from chatrelay.utils.auth import resolve_token
from chatrelay.websockets.connection_manager import manager

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_store() -> SessionStore:
    return get_store()


def get_relay_service(store: SessionStore = Depends(get_session_store)) -> RelayService:
    return RelayService(store, manager)


def get_presence_tracker(store: SessionStore = Depends(get_session_store)) -> PresenceTracker:
    return PresenceTracker(store, manager)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    store: SessionStore = Depends(get_session_store)
) -> User:
    """
    현재 인증된 사용자를 조회합니다.

    Raises:
        AuthenticationException: 토큰이 없거나 유효하지 않거나 사용자가 없는 경우
    """
    user_id = resolve_token(credentials.credentials if credentials else None)

    user = await auth_service.find_user_by_id(store, user_id)
    if user is None:
        # 삭제된 사용자의 토큰
        raise invalid_token_error()

    return user
