from typing import Optional

from fastapi import WebSocket, status

from chatrelay.core.config import settings
from chatrelay.core.errors import AuthenticationException
from chatrelay.database.base import SessionStore
from chatrelay.utils.auth import extract_bearer_token, resolve_token
import logging

logger = logging.getLogger(__name__)


class WebSocketRejected(Exception):
    """인증 실패로 연결을 거부해야 하는 경우"""

    def __init__(self, reason: str, code: int = status.WS_1008_POLICY_VIOLATION):
        super().__init__(reason)
        self.reason = reason
        self.code = code


def extract_websocket_token(websocket: WebSocket) -> Optional[str]:
    """Authorization 헤더 우선, 없으면 `token` 쿼리 파라미터"""
    token = extract_bearer_token(websocket.headers.get("authorization"))
    if token:
        return token
    return websocket.query_params.get("token") or None


async def authenticate_websocket(websocket: WebSocket, store: SessionStore) -> Optional[str]:
    """
    WebSocket 연결의 자격 증명을 사용자 ID로 변환합니다.

    Returns:
        str: 인증된 사용자 ID, 자격 증명이 없으면 None (익명 연결)

    Raises:
        WebSocketRejected: 자격 증명이 잘못되었거나 필수인데 없는 경우
    """
    token = extract_websocket_token(websocket)
    if token is None:
        if settings.websocket_require_auth:
            logger.warning("No credential provided for WebSocket connection")
            raise WebSocketRejected("unauthorized")
        return None

    try:
        user_id = resolve_token(token)
    except AuthenticationException as e:
        logger.warning(f"Invalid token provided for WebSocket connection: {e.message}")
        raise WebSocketRejected("unauthorized") from e

    if await store.find_user({"userId": user_id}) is None:
        logger.warning(f"Token for unknown user {user_id} on WebSocket connection")
        raise WebSocketRejected("unauthorized")

    logger.info(f"WebSocket authentication successful for user: {user_id}")
    return user_id
