from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chatrelay.api.dependencies import get_session_store
from chatrelay.database.memory import InMemorySessionStore
from chatrelay.main import app
from chatrelay.models import User
from chatrelay.services import auth_service
from chatrelay.services.presence_service import PresenceTracker
from chatrelay.services.relay_service import RelayService, RoomLockRegistry
from chatrelay.websockets.connection_manager import ConnectionManager, manager


@pytest.fixture(autouse=True)
def reset_global_manager():
    """전역 연결 매니저 초기화"""
    manager.connections.clear()
    manager.room_connections.clear()
    yield
    manager.connections.clear()
    manager.room_connections.clear()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def connections() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def relay(store, connections) -> RelayService:
    return RelayService(
        store,
        connections,
        locks=RoomLockRegistry(),
        serialize_writes=True,
        verify_membership=False
    )


@pytest.fixture
def presence(store, connections) -> PresenceTracker:
    return PresenceTracker(store, connections)


@pytest_asyncio.fixture
async def client(store) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    app.dependency_overrides[get_session_store] = lambda: store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user_1(store) -> User:
    return await auth_service.register(store, "testuser1", "testpass123!")


@pytest_asyncio.fixture
async def test_user_2(store) -> User:
    return await auth_service.register(store, "testuser2", "testpass123!")


@pytest_asyncio.fixture
async def test_user_3(store) -> User:
    return await auth_service.register(store, "testuser3", "testpass123!")


@pytest_asyncio.fixture
async def auth_token_user_1(test_user_1) -> str:
    return auth_service.issue_token(test_user_1)


@pytest_asyncio.fixture
async def global_room(store, test_user_1):
    return await store.find_room({"roomName": "Global"})
