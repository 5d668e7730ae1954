from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Set
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """라이브 채널 전송 계층 (FastAPI WebSocket 호환)"""

    async def send_json(self, data: Any) -> None:
        ...

    async def close(self, code: int = 1000) -> None:
        ...


@dataclass(eq=False)
class Connection:
    """하나의 라이브 세션. 영속화되지 않으며 연결 해제 시 사라집니다."""
    transport: Transport
    user_id: Optional[str] = None
    connection_id: str = field(default_factory=lambda: uuid4().hex)
    rooms: Set[str] = field(default_factory=set)
    # userConnect로 알린 프로필 (전송 계층 연결 해제 시 오프라인 처리에 사용)
    profile: Optional[Dict[str, Any]] = None


def envelope(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": data}


class ConnectionManager:
    def __init__(self):
        # 연결별: {connection_id: Connection}
        self.connections: Dict[str, Connection] = {}
        # 채팅방별 구독자: {room_id: {connection_id}}
        self.room_connections: Dict[str, Set[str]] = {}

    def register(self, transport: Transport, user_id: Optional[str] = None) -> Connection:
        """새 라이브 연결을 등록합니다. (accept는 호출자가 처리)"""
        connection = Connection(transport=transport, user_id=user_id)
        self.connections[connection.connection_id] = connection
        logger.info(f"Connection {connection.connection_id} registered (user={user_id})")
        return connection

    def subscribe(self, connection: Connection, room_ids: List[str]) -> List[str]:
        """연결을 각 채팅방의 구독자 집합에 추가합니다."""
        joined = []
        for room_id in room_ids:
            self.room_connections.setdefault(room_id, set()).add(connection.connection_id)
            connection.rooms.add(room_id)
            joined.append(room_id)
        return joined

    def is_subscribed(self, connection: Connection, room_id: str) -> bool:
        return connection.connection_id in self.room_connections.get(room_id, ())

    def unregister(self, connection: Connection):
        """연결과 모든 구독을 제거합니다."""
        self.connections.pop(connection.connection_id, None)
        for room_id in list(connection.rooms):
            subscribers = self.room_connections.get(room_id)
            if subscribers is None:
                continue
            subscribers.discard(connection.connection_id)
            # 구독자가 없으면 방 자체를 제거
            if not subscribers:
                del self.room_connections[room_id]
        connection.rooms.clear()
        logger.info(f"Connection {connection.connection_id} unregistered")

    async def send(self, connection: Connection, event: str, data: Any) -> bool:
        """특정 연결에 이벤트를 전송합니다. 실패한 연결은 정리합니다."""
        try:
            await connection.transport.send_json(envelope(event, data))
            return True
        except Exception as e:
            logger.error(f"Failed to send {event} to connection {connection.connection_id}: {e}")
            self.unregister(connection)
            return False

    async def broadcast_to_room(
        self,
        room_id: str,
        event: str,
        data: Any,
        exclude: Optional[Connection] = None
    ) -> int:
        """채팅방 구독자에게 브로드캐스트합니다. 전달된 연결 수를 반환합니다."""
        delivered = 0
        for connection_id in list(self.room_connections.get(room_id, ())):
            if exclude is not None and connection_id == exclude.connection_id:
                continue
            # 전송 직전에 구독 여부를 다시 확인
            if connection_id not in self.room_connections.get(room_id, ()):
                continue
            connection = self.connections.get(connection_id)
            if connection is None:
                continue
            if await self.send(connection, event, data):
                delivered += 1
        return delivered

    async def broadcast(self, event: str, data: Any, exclude: Optional[Connection] = None) -> int:
        """모든 라이브 연결에 브로드캐스트합니다."""
        delivered = 0
        for connection_id in list(self.connections):
            if exclude is not None and connection_id == exclude.connection_id:
                continue
            connection = self.connections.get(connection_id)
            if connection is None:
                continue
            if await self.send(connection, event, data):
                delivered += 1
        return delivered

    def get_room_subscribers(self, room_id: str) -> List[str]:
        return list(self.room_connections.get(room_id, ()))

    def get_connection_count(self) -> int:
        return len(self.connections)


# 전역 연결 매니저 인스턴스
manager = ConnectionManager()
