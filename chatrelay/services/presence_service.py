"""
Presence Tracker

온라인/오프라인 상태를 Session Store에 기록하고 모든 라이브 연결에 알립니다.
저장소가 기준(source of truth)이며 브로드캐스트는 best-effort 알림입니다.
"""

from typing import Any, Dict, List, Optional

from chatrelay.core.errors import user_not_found_error
from chatrelay.core.logging import get_logger
from chatrelay.database.base import SessionStore
from chatrelay.models import User
from chatrelay.websockets.connection_manager import Connection, ConnectionManager, manager

logger = get_logger(__name__)

USER_CONNECT_EVENT = "userConnect"
USER_DISCONNECT_EVENT = "userDisconnect"


class PresenceTracker:
    def __init__(self, store: SessionStore, connections: ConnectionManager = manager):
        self.store = store
        self.connections = connections

    async def connect(
        self,
        user_id: str,
        profile: Optional[Dict[str, Any]] = None,
        origin: Optional[Connection] = None
    ) -> int:
        """
        사용자를 온라인으로 표시하고 다른 모든 연결에 userConnect를 보냅니다.

        Returns:
            int: 이벤트를 받은 연결 수
        """
        payload = {**(profile or {}), "userId": user_id}
        await self.store.update_user(user_id, {"online": True})

        if origin is not None:
            origin.profile = payload

        delivered = await self.connections.broadcast(USER_CONNECT_EVENT, payload, exclude=origin)
        logger.info(f"User {user_id} online", extra={
            "user_id": user_id,
            "event_type": "user_online",
            "delivered": delivered
        })
        return delivered

    async def disconnect(
        self,
        user_id: str,
        profile: Optional[Dict[str, Any]] = None,
        origin: Optional[Connection] = None
    ) -> int:
        """사용자를 오프라인으로 표시하고 다른 모든 연결에 userDisconnect를 보냅니다."""
        payload = {**(profile or {}), "userId": user_id}
        await self.store.update_user(user_id, {"online": False})

        if origin is not None:
            origin.profile = None

        delivered = await self.connections.broadcast(USER_DISCONNECT_EVENT, payload, exclude=origin)
        logger.info(f"User {user_id} offline", extra={
            "user_id": user_id,
            "event_type": "user_offline",
            "delivered": delivered
        })
        return delivered

    async def connection_closed(self, connection: Connection) -> bool:
        """
        전송 계층 연결 해제 처리.

        userConnect로 자신을 알린 연결이 userDisconnect 없이 끊기면 오프라인으로 전환합니다.
        """
        profile = connection.profile
        if not profile or not profile.get("userId"):
            return False
        await self.disconnect(profile["userId"], profile, origin=connection)
        return True

    async def set_online(self, user_id: str, online: bool) -> None:
        """REST 요청에 의한 온라인 플래그 변경 (브로드캐스트 없음)"""
        user = await self.store.find_user({"userId": user_id})
        if user is None:
            raise user_not_found_error(user_id)
        await self.store.update_user(user_id, {"online": online})

    async def online_users(self) -> List[User]:
        return await self.store.list_users({"online": True})
