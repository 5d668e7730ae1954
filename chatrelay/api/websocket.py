from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chatrelay.api.dependencies import get_session_store
from chatrelay.core.errors import BaseCustomException
from chatrelay.core.logging import get_logger, log_websocket_event
from chatrelay.database.base import SessionStore
from chatrelay.services.presence_service import PresenceTracker
from chatrelay.services.relay_service import RelayService
from chatrelay.websockets.auth import WebSocketRejected, authenticate_websocket
from chatrelay.websockets.connection_manager import manager
from chatrelay.websockets.handlers import WebSocketEventHandler

logger = get_logger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    store: SessionStore = Depends(get_session_store),
):
    """
    라이브 채널 WebSocket 엔드포인트

    메시지 형식: {"event": <이름>, "data": <페이로드>}
    자격 증명: Authorization: Bearer <jwt> 헤더 또는 token 쿼리 파라미터 (선택)
    """
    # 1. 인증
    try:
        user_id = await authenticate_websocket(websocket, store)
    except WebSocketRejected as e:
        await websocket.close(code=e.code, reason=e.reason)
        return

    # 2. 연결 등록
    await websocket.accept()
    connection = manager.register(websocket, user_id=user_id)
    handler = WebSocketEventHandler(RelayService(store, manager), PresenceTracker(store, manager))
    log_websocket_event(logger, "connected", connection.connection_id, user_id=user_id)

    try:
        # 3. 이벤트 수신 루프
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError as e:
                # JSON 파싱 오류
                logger.error(f"Invalid JSON from connection {connection.connection_id}: {e}")
                await manager.send(connection, "error", {
                    "error": "invalid_json",
                    "message": "Invalid message format",
                    "details": None,
                    "status_code": 400
                })
                continue

            try:
                await handler.handle(connection, data)
            except WebSocketDisconnect:
                raise
            except Exception as e:
                logger.error(
                    f"Error processing event from connection {connection.connection_id}: {e}",
                    exc_info=True
                )
                await manager.send(connection, "error", {
                    "error": "processing_error",
                    "message": "Error while processing event",
                    "details": None,
                    "status_code": 500
                })

    except WebSocketDisconnect:
        log_websocket_event(logger, "disconnected", connection.connection_id, user_id=user_id)

    finally:
        # 4. 연결 해제 처리 (진행 중인 영속화는 끝까지 기다림)
        manager.unregister(connection)
        await handler.drain()
        try:
            await handler.presence.connection_closed(connection)
        except BaseCustomException as e:
            logger.error(f"Presence cleanup failed for connection {connection.connection_id}: {e.message}")
