"""
WebSocket 라이브 채널 모듈

주요 구성 요소:
- connection_manager: 라이브 연결과 채팅방 구독 관리
- auth: WebSocket 인증 처리
- handlers: 이벤트 처리 핸들러
"""

from .connection_manager import manager, Connection, ConnectionManager

__all__ = [
    "manager",
    "Connection",
    "ConnectionManager",
]
