"""
Relay Core

라이브 연결의 채팅방 구독, 메시지 fan-out, 영속 메시지 로그와의 중복 제거,
메시지 목록 일괄 동기화(reconciliation)를 담당합니다.

발행(publish)은 두 단계로 나뉩니다.
- fan_out: 보낸 연결을 제외한 구독자에게 즉시 전달 (실패하지 않음)
- persist_message: 채팅방 로그에 추가 (StoreException 발생 가능)
"""

import asyncio
import weakref
from contextlib import asynccontextmanager, nullcontext
from typing import Any, Iterable, List, Optional

from chatrelay.core.config import settings
from chatrelay.core.errors import room_access_denied_error, room_not_found_error
from chatrelay.core.logging import get_logger, log_websocket_event
from chatrelay.database.base import SessionStore
from chatrelay.models import Message
from chatrelay.services import membership_service
from chatrelay.websockets.connection_manager import Connection, ConnectionManager, manager

logger = get_logger(__name__)

RECEIVE_MESSAGE_EVENT = "receive-message"


class RoomLockRegistry:
    """
    채팅방별 쓰기 직렬화 (프로세스 내 actor-per-room)

    보유 중이거나 대기 중인 코루틴이 참조하는 락만 남고, 사용이 끝난 락은
    자동으로 제거됩니다.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def get(self, room_id: str) -> asyncio.Lock:
        # 락은 생성된 이벤트 루프에 묶이므로 루프가 바뀌면 새로 만듭니다
        loop = asyncio.get_running_loop()
        if loop is not self._loop:
            self._locks.clear()
            self._loop = loop

        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock

    def __len__(self):
        return len(self._locks)


# 전역 채팅방 락 레지스트리
room_locks = RoomLockRegistry()


def reconcile_messages(persisted: List[Message], incoming: List[Message]) -> List[Message]:
    """
    마지막으로 저장된 메시지 ID를 기준(anchor)으로 들어온 목록을 병합합니다.

    - anchor가 incoming에 있으면 그 뒤의 메시지만 추가
    - 없으면 incoming 전체를 추가 (중복이 생길 수 있음)
    """
    if not persisted:
        return list(incoming)

    anchor = persisted[-1]
    anchor_index = next(
        (index for index, message in enumerate(incoming) if message.same_id(anchor)),
        -1
    )
    return list(persisted) + list(incoming[anchor_index + 1:])


class RelayService:
    def __init__(
        self,
        store: SessionStore,
        connections: ConnectionManager = manager,
        locks: Optional[RoomLockRegistry] = None,
        serialize_writes: Optional[bool] = None,
        verify_membership: Optional[bool] = None,
    ):
        self.store = store
        self.connections = connections
        self.locks = locks if locks is not None else room_locks
        self.serialize_writes = (
            settings.serialize_room_writes if serialize_writes is None else serialize_writes
        )
        self.verify_membership = (
            settings.verify_room_membership if verify_membership is None else verify_membership
        )

    @asynccontextmanager
    async def _room_log(self, room_id: str):
        guard = self.locks.get(room_id) if self.serialize_writes else nullcontext()
        async with guard:
            yield

    async def subscribe(self, connection: Connection, rooms: Iterable[Any]) -> List[str]:
        """
        연결을 채팅방 구독자 집합에 추가합니다.

        기본적으로 멤버십을 다시 검증하지 않습니다. (REST 계층에서 받은 목록을 신뢰)
        verify_membership이 켜져 있으면 멤버가 아닌 방은 건너뜁니다.
        """
        room_ids = []
        for room in rooms:
            room_id = room.get("roomId") if isinstance(room, dict) else getattr(room, "room_id", None)
            if room_id:
                room_ids.append(str(room_id))

        if self.verify_membership:
            allowed = []
            for room_id in room_ids:
                if connection.user_id and await membership_service.is_member(
                    self.store, connection.user_id, room_id
                ):
                    allowed.append(room_id)
                else:
                    logger.warning(
                        f"Connection {connection.connection_id} denied subscription to room {room_id}"
                    )
            room_ids = allowed

        joined = self.connections.subscribe(connection, room_ids)
        log_websocket_event(logger, "connectRooms", connection.connection_id, rooms=joined)
        return joined

    async def fan_out(self, connection: Connection, message: Message, room_id: str) -> int:
        """보낸 연결을 제외한 채팅방 구독자에게 메시지를 전달합니다."""
        payload = {"message": message.to_document(), "roomId": room_id}
        delivered = await self.connections.broadcast_to_room(
            room_id, RECEIVE_MESSAGE_EVENT, payload, exclude=connection
        )
        log_websocket_event(
            logger, "fan_out", connection.connection_id, room_id,
            message_id=message.id, delivered=delivered
        )
        return delivered

    async def persist_message(self, room_id: str, message: Message) -> bool:
        """
        메시지를 채팅방 로그에 추가합니다.

        Returns:
            bool: 새로 추가되었으면 True, 같은 ID가 이미 있으면 False
        """
        async with self._room_log(room_id):
            room = await self.store.find_room({"roomId": room_id})
            if room is None:
                raise room_not_found_error(room_id)

            if any(existing.same_id(message) for existing in room.messages):
                logger.debug(f"Message {message.id} already persisted in room {room_id}")
                return False

            await self.store.update_room(room_id, {"messages": room.messages + [message]})
            return True

    def check_publish(self, connection: Connection, room_id: str):
        """strict 모드에서는 구독하지 않은 채팅방으로의 발행을 거부합니다."""
        if self.verify_membership and not self.connections.is_subscribed(connection, room_id):
            raise room_access_denied_error(room_id)

    async def publish(self, connection: Connection, message: Message, room_id: str) -> bool:
        """
        fan-out 후 영속화합니다. 영속화 실패는 호출자에게 전달됩니다.

        라이브 채널은 두 단계를 나눠 호출하고 영속화는 백그라운드로 실행합니다.
        (WebSocketEventHandler 참고)
        """
        self.check_publish(connection, room_id)

        await self.fan_out(connection, message, room_id)
        return await self.persist_message(room_id, message)

    async def update_message_list(
        self, room_id: str, incoming: List[Message]
    ) -> Optional[List[Message]]:
        """
        클라이언트가 보낸 메시지 목록으로 채팅방 로그를 따라잡습니다.

        Returns:
            병합된 메시지 목록, incoming이 비어 있으면 None
        """
        if not incoming:
            return None

        async with self._room_log(room_id):
            room = await self.store.find_room({"roomId": room_id})
            if room is None:
                raise room_not_found_error(room_id)

            merged = reconcile_messages(room.messages, incoming)
            await self.store.update_room(room_id, {"messages": merged})

        logger.info(
            f"Room {room_id} message list reconciled",
            extra={"room_id": room_id, "before": len(room.messages), "after": len(merged)}
        )
        return merged
