import pytest

from chatrelay.core.errors import AuthorizationException, ResourceNotFoundException
from chatrelay.models import Message, Room
from chatrelay.services.relay_service import RelayService, RoomLockRegistry
from tests.utils import FakeTransport, make_message


@pytest.fixture
async def room(store):
    return await store.insert_room(Room(room_name="general"))


class TestSubscribe:
    """채팅방 구독 테스트"""

    @pytest.mark.asyncio
    async def test_subscribe_adds_connection_to_each_room(self, relay, connections):
        connection = connections.register(FakeTransport())

        joined = await relay.subscribe(connection, [{"roomId": "r1"}, {"roomId": "r2"}])

        assert joined == ["r1", "r2"]
        assert connection.rooms == {"r1", "r2"}
        assert connections.get_room_subscribers("r1") == [connection.connection_id]

    @pytest.mark.asyncio
    async def test_subscribe_trusts_caller_by_default(self, relay, connections):
        """기본 모드에서는 존재하지 않는 방도 검증 없이 구독"""
        connection = connections.register(FakeTransport(), user_id="someone")

        joined = await relay.subscribe(connection, [{"roomId": "not-a-room"}])

        assert joined == ["not-a-room"]

    @pytest.mark.asyncio
    async def test_strict_mode_skips_rooms_user_is_not_member_of(self, store, connections, room):
        await store.update_room(room.room_id, {"users": ["member"]})
        strict = RelayService(store, connections, locks=RoomLockRegistry(), verify_membership=True)
        member = connections.register(FakeTransport(), user_id="member")
        outsider = connections.register(FakeTransport(), user_id="outsider")

        assert await strict.subscribe(member, [{"roomId": room.room_id}]) == [room.room_id]
        assert await strict.subscribe(outsider, [{"roomId": room.room_id}]) == []


class TestPublish:
    """메시지 발행 테스트"""

    @pytest.mark.asyncio
    async def test_fan_out_excludes_sender(self, relay, connections, room):
        sender_transport, other_transport = FakeTransport(), FakeTransport()
        sender = connections.register(sender_transport)
        other = connections.register(other_transport)
        await relay.subscribe(sender, [{"roomId": room.room_id}])
        await relay.subscribe(other, [{"roomId": room.room_id}])

        await relay.publish(sender, make_message("m1"), room.room_id)

        assert sender_transport.sent == []
        received = other_transport.events("receive-message")
        assert len(received) == 1
        assert received[0]["roomId"] == room.room_id
        assert received[0]["message"]["id"] == "m1"

    @pytest.mark.asyncio
    async def test_fan_out_only_reaches_room_subscribers(self, relay, connections, room):
        sender = connections.register(FakeTransport())
        elsewhere_transport = FakeTransport()
        elsewhere = connections.register(elsewhere_transport)
        await relay.subscribe(sender, [{"roomId": room.room_id}])
        await relay.subscribe(elsewhere, [{"roomId": "other-room"}])

        await relay.publish(sender, make_message("m1"), room.room_id)

        assert elsewhere_transport.sent == []

    @pytest.mark.asyncio
    async def test_fan_out_preserves_client_fields(self, relay, connections, room):
        sender = connections.register(FakeTransport())
        other_transport = FakeTransport()
        other = connections.register(other_transport)
        await relay.subscribe(other, [{"roomId": room.room_id}])

        message = Message(id="m1", sender="alice", body="hello", replyTo="m0")
        await relay.fan_out(sender, message, room.room_id)

        delivered = other_transport.events("receive-message")[0]["message"]
        assert delivered["replyTo"] == "m0"
        assert delivered["body"] == "hello"

    @pytest.mark.asyncio
    async def test_publish_persists_message(self, relay, store, connections, room):
        sender = connections.register(FakeTransport())

        appended = await relay.publish(sender, make_message("m1"), room.room_id)

        assert appended is True
        stored = await store.find_room({"roomId": room.room_id})
        assert [m.id for m in stored.messages] == ["m1"]

    @pytest.mark.asyncio
    async def test_publish_is_idempotent(self, relay, store, connections, room):
        """같은 메시지 ID를 두 번 발행해도 한 번만 저장"""
        sender = connections.register(FakeTransport())

        first = await relay.publish(sender, make_message("m1"), room.room_id)
        second = await relay.publish(sender, make_message("m1"), room.room_id)

        assert first is True
        assert second is False
        stored = await store.find_room({"roomId": room.room_id})
        assert [m.id for m in stored.messages] == ["m1"]

    @pytest.mark.asyncio
    async def test_retransmission_is_still_relayed_live(self, relay, connections, room):
        sender = connections.register(FakeTransport())
        other_transport = FakeTransport()
        other = connections.register(other_transport)
        await relay.subscribe(other, [{"roomId": room.room_id}])

        await relay.publish(sender, make_message("m1"), room.room_id)
        await relay.publish(sender, make_message("m1"), room.room_id)

        assert len(other_transport.events("receive-message")) == 2

    @pytest.mark.asyncio
    async def test_publish_to_missing_room_fans_out_then_fails(self, relay, connections):
        sender = connections.register(FakeTransport())
        other_transport = FakeTransport()
        other = connections.register(other_transport)
        await relay.subscribe(other, [{"roomId": "ghost"}])

        with pytest.raises(ResourceNotFoundException):
            await relay.publish(sender, make_message("m1"), "ghost")

        # 라이브 전달은 영속화보다 먼저 일어남
        assert len(other_transport.events("receive-message")) == 1

    @pytest.mark.asyncio
    async def test_unsubscribed_connection_receives_nothing(self, relay, connections, room):
        sender = connections.register(FakeTransport())
        gone_transport = FakeTransport()
        gone = connections.register(gone_transport)
        await relay.subscribe(gone, [{"roomId": room.room_id}])
        connections.unregister(gone)

        delivered = await relay.fan_out(sender, make_message("m1"), room.room_id)

        assert delivered == 0
        assert gone_transport.sent == []

    @pytest.mark.asyncio
    async def test_failed_recipient_is_dropped(self, relay, connections, room):
        sender = connections.register(FakeTransport())
        broken = connections.register(FakeTransport(fail=True))
        healthy_transport = FakeTransport()
        healthy = connections.register(healthy_transport)
        await relay.subscribe(broken, [{"roomId": room.room_id}])
        await relay.subscribe(healthy, [{"roomId": room.room_id}])

        delivered = await relay.fan_out(sender, make_message("m1"), room.room_id)

        assert delivered == 1
        assert broken.connection_id not in connections.connections
        assert connections.get_room_subscribers(room.room_id) == [healthy.connection_id]

    @pytest.mark.asyncio
    async def test_strict_mode_rejects_publish_to_unsubscribed_room(self, store, connections, room):
        strict = RelayService(store, connections, locks=RoomLockRegistry(), verify_membership=True)
        sender = connections.register(FakeTransport(), user_id="outsider")

        with pytest.raises(AuthorizationException):
            await strict.publish(sender, make_message("m1"), room.room_id)

        stored = await store.find_room({"roomId": room.room_id})
        assert stored.messages == []


class TestMessageIds:
    """클라이언트 생성 메시지 ID 테스트"""

    @pytest.mark.asyncio
    async def test_numeric_id_is_accepted_and_kept_as_number(self, relay, store, connections, room):
        sender = connections.register(FakeTransport())
        other_transport = FakeTransport()
        other = connections.register(other_transport)
        await relay.subscribe(other, [{"roomId": room.room_id}])

        message = Message.model_validate({"id": 1700000000000, "body": "hi"})
        await relay.publish(sender, message, room.room_id)

        assert other_transport.events("receive-message")[0]["message"] == {"id": 1700000000000, "body": "hi"}
        stored = await store.find_room({"roomId": room.room_id})
        assert [m.id for m in stored.messages] == [1700000000000]

    @pytest.mark.asyncio
    async def test_numeric_id_is_idempotent(self, relay, store, connections, room):
        sender = connections.register(FakeTransport())

        first = await relay.publish(sender, Message(id=42), room.room_id)
        second = await relay.publish(sender, Message(id=42), room.room_id)

        assert (first, second) == (True, False)

    @pytest.mark.asyncio
    async def test_numeric_and_string_ids_are_distinct(self, relay, store, connections, room):
        sender = connections.register(FakeTransport())

        await relay.publish(sender, Message(id=42), room.room_id)
        appended = await relay.publish(sender, Message(id="42"), room.room_id)

        assert appended is True
        stored = await store.find_room({"roomId": room.room_id})
        assert [m.id for m in stored.messages] == [42, "42"]

    def test_empty_string_id_rejected(self):
        with pytest.raises(ValueError):
            Message(id="")
