from .auth import router as auth_router
from .health import router as health_router
from .room import router as room_router
from .user import router as user_router
from .websocket import router as websocket_router

__all__ = [
    "auth_router",
    "health_router",
    "room_router",
    "user_router",
    "websocket_router",
]
