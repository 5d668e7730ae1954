import pytest

from chatrelay.core.errors import ConflictException
from chatrelay.models import Room, User
from tests.utils import make_message


class TestInMemorySessionStore:
    """In-memory Session Store 테스트"""

    @pytest.mark.asyncio
    async def test_find_by_any_field(self, store):
        user = await store.insert_user(User(user_name="alice", password_hash="x"))

        assert (await store.find_user({"userName": "alice"})).user_id == user.user_id
        assert (await store.find_user({"userId": user.user_id})).user_name == "alice"
        assert await store.find_user({"userName": "bob"}) is None

    @pytest.mark.asyncio
    async def test_user_name_is_unique(self, store):
        await store.insert_user(User(user_name="alice", password_hash="x"))

        with pytest.raises(ConflictException):
            await store.insert_user(User(user_name="alice", password_hash="y"))

        assert len(await store.list_users()) == 1

    @pytest.mark.asyncio
    async def test_returned_models_are_copies(self, store):
        room = await store.insert_room(Room(room_name="r"))

        loaded = await store.find_room({"roomId": room.room_id})
        loaded.messages.append(make_message("m1"))

        assert (await store.find_room({"roomId": room.room_id})).messages == []

    @pytest.mark.asyncio
    async def test_update_room_messages(self, store):
        room = await store.insert_room(Room(room_name="r"))

        await store.update_room(room.room_id, {"messages": [make_message("m1")]})

        stored = await store.find_room({"roomId": room.room_id})
        assert [m.id for m in stored.messages] == ["m1"]
        assert store.rooms[room.room_id]["messages"][0]["id"] == "m1"

    @pytest.mark.asyncio
    async def test_documents_use_camel_case_fields(self, store):
        user = await store.insert_user(User(user_name="alice", password_hash="x"))

        document = store.users[user.user_id]
        assert {"userId", "userName", "online", "rooms"} <= set(document)

    @pytest.mark.asyncio
    async def test_list_users_with_criteria(self, store):
        await store.insert_user(User(user_name="alice", password_hash="x", online=True))
        await store.insert_user(User(user_name="bob", password_hash="x"))

        online = await store.list_users({"online": True})

        assert [user.user_name for user in online] == ["alice"]
        assert len(await store.list_users()) == 2

    @pytest.mark.asyncio
    async def test_delete_room_removes_one_match(self, store):
        await store.insert_room(Room(room_name="same"))
        await store.insert_room(Room(room_name="same"))

        assert await store.delete_room({"roomName": "same"}) == 1
        assert len(await store.list_rooms()) == 1
        assert await store.delete_room({"roomName": "missing"}) == 0

    @pytest.mark.asyncio
    async def test_delete_all(self, store):
        await store.insert_user(User(user_name="alice", password_hash="x"))
        await store.insert_room(Room(room_name="r"))

        assert await store.delete_all_users() == 1
        assert await store.delete_all_rooms() == 1
        assert await store.list_users() == []
        assert await store.list_rooms() == []

    @pytest.mark.asyncio
    async def test_ping(self, store):
        assert await store.ping() is True
