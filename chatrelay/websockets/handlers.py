import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Set

from pydantic import TypeAdapter, ValidationError

from chatrelay.core.errors import AuthorizationException, BaseCustomException
from chatrelay.models import Message
from chatrelay.schemas.events import ClientEnvelope, PresencePayload, RoomRef, SendMessagePayload
from chatrelay.services.presence_service import PresenceTracker
from chatrelay.services.relay_service import RelayService
from chatrelay.websockets.connection_manager import Connection

logger = logging.getLogger(__name__)

ERROR_EVENT = "error"

_room_list = TypeAdapter(list[RoomRef])


class WebSocketEventHandler:
    """
    라이브 채널 이벤트 처리 핸들러 (연결당 하나)

    send-message는 fan-out까지만 수신 루프 안에서 처리하고, 영속화는 백그라운드
    태스크로 넘깁니다. 저장소가 느려도 같은 연결의 다음 메시지 전달은 지연되지 않습니다.
    같은 채팅방의 쓰기 순서는 RelayService의 채팅방별 락이 보장합니다.
    """

    def __init__(self, relay: RelayService, presence: PresenceTracker):
        self.relay = relay
        self.presence = presence
        # 진행 중인 영속화 태스크
        self.pending: Set[asyncio.Task] = set()
        self._handlers: Dict[str, Callable[[Connection, Any], Awaitable[None]]] = {
            "connectRooms": self._handle_connect_rooms,
            "send-message": self._handle_send_message,
            "userConnect": self._handle_user_connect,
            "userDisconnect": self._handle_user_disconnect,
        }

    async def handle(self, connection: Connection, raw: Any):
        """
        클라이언트 이벤트 하나를 처리합니다.

        처리 중 발생한 오류는 보낸 연결에만 error 이벤트로 알리고 연결은 유지합니다.
        """
        try:
            envelope = ClientEnvelope.model_validate(raw)
            handler = self._handlers.get(envelope.event)
            if handler is None:
                logger.warning(f"Unknown event: {envelope.event} from connection {connection.connection_id}")
                await self._send_error(connection, "unknown_event", f"Unknown event: {envelope.event}")
                return
            await handler(connection, envelope.data)

        except ValidationError as e:
            logger.warning(f"Invalid payload from connection {connection.connection_id}: {e}")
            await self._send_error(
                connection, "validation_error", "Invalid event payload",
                details={"errors": e.errors(include_url=False, include_context=False)}
            )
        except BaseCustomException as e:
            logger.error(f"Event handling failed for connection {connection.connection_id}: {e.message}")
            await self.relay.connections.send(connection, ERROR_EVENT, e.to_dict())

    async def _send_error(self, connection: Connection, error: str, message: str, details=None):
        await self.relay.connections.send(connection, ERROR_EVENT, {
            "error": error,
            "message": message,
            "details": details,
            "status_code": 400
        })

    async def _handle_connect_rooms(self, connection: Connection, data: Any):
        rooms = _room_list.validate_python(data or [])
        await self.relay.subscribe(connection, [{"roomId": room.room_id} for room in rooms])

    async def _handle_send_message(self, connection: Connection, data: Any):
        payload = SendMessagePayload.model_validate(data)
        self.relay.check_publish(connection, payload.room_id)

        await self.relay.fan_out(connection, payload.message, payload.room_id)

        task = asyncio.create_task(self._persist(connection, payload.message, payload.room_id))
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)

    async def _persist(self, connection: Connection, message: Message, room_id: str):
        try:
            await self.relay.persist_message(room_id, message)
        except BaseCustomException as e:
            logger.error(f"Persisting message {message.id} to room {room_id} failed: {e.message}")
            await self.relay.connections.send(connection, ERROR_EVENT, e.to_dict())
        except Exception as e:
            logger.error(f"Unexpected error persisting message {message.id} to room {room_id}: {e}", exc_info=True)
            await self.relay.connections.send(connection, ERROR_EVENT, {
                "error": "processing_error",
                "message": "Error while persisting message",
                "details": None,
                "status_code": 500
            })

    async def drain(self):
        """진행 중인 영속화가 모두 끝날 때까지 대기합니다."""
        if self.pending:
            await asyncio.gather(*list(self.pending), return_exceptions=True)

    def _presence_payload(self, connection: Connection, data: Any) -> PresencePayload:
        payload = PresencePayload.model_validate(data)
        # 인증된 연결은 자기 자신의 상태만 바꿀 수 있음
        if connection.user_id and payload.user_id != connection.user_id:
            raise AuthorizationException(
                "Cannot change presence of another user",
                details={"user_id": payload.user_id}
            )
        return payload

    async def _handle_user_connect(self, connection: Connection, data: Any):
        payload = self._presence_payload(connection, data)
        await self.presence.connect(payload.user_id, payload.profile(), origin=connection)

    async def _handle_user_disconnect(self, connection: Connection, data: Any):
        payload = self._presence_payload(connection, data)
        await self.presence.disconnect(payload.user_id, payload.profile(), origin=connection)
