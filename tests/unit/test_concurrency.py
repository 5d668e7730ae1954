"""
같은 채팅방에 대한 동시 발행 테스트

load → append → write 순서가 원자적이지 않으면 같은 스냅샷에서 시작한 두 발행 중
하나가 덮어써질 수 있습니다. 채팅방별 쓰기 직렬화가 켜져 있으면 둘 다 남습니다.
"""

import asyncio
import gc

import pytest

from chatrelay.database.memory import InMemorySessionStore
from chatrelay.models import Room
from chatrelay.services.relay_service import RelayService, RoomLockRegistry
from tests.utils import FakeTransport, make_message


class SnapshotBarrierStore(InMemorySessionStore):
    """find_room 호출이 parties개 모일 때까지 결과 반환을 늦추는 저장소"""

    def __init__(self, parties: int):
        super().__init__()
        self.parties = parties
        self.waiting = 0
        self.released = asyncio.Event()

    async def find_room(self, criteria):
        room = await super().find_room(criteria)
        self.waiting += 1
        if self.waiting >= self.parties:
            self.released.set()
        await asyncio.wait_for(self.released.wait(), timeout=5)
        return room


def ids(room):
    return [message.id for message in room.messages]


@pytest.mark.asyncio
async def test_unserialized_publishes_from_same_snapshot_lose_an_update(connections):
    store = SnapshotBarrierStore(parties=2)
    room = await store.insert_room(Room(room_name="race"))
    relay = RelayService(store, connections, locks=RoomLockRegistry(), serialize_writes=False)
    alice = connections.register(FakeTransport())
    bob = connections.register(FakeTransport())

    results = await asyncio.gather(
        relay.publish(alice, make_message("a1", sender="alice"), room.room_id),
        relay.publish(bob, make_message("b1", sender="bob"), room.room_id),
    )

    # 두 발행 모두 "추가했다"고 보고하지만 실제로는 하나만 남음
    assert results == [True, True]
    stored = await InMemorySessionStore.find_room(store, {"roomId": room.room_id})
    assert len(stored.messages) == 1
    assert ids(stored)[0] in {"a1", "b1"}


@pytest.mark.asyncio
async def test_serialized_publishes_keep_both_messages(store, connections):
    room = await store.insert_room(Room(room_name="race"))
    relay = RelayService(store, connections, locks=RoomLockRegistry(), serialize_writes=True)
    alice = connections.register(FakeTransport())
    bob = connections.register(FakeTransport())

    await asyncio.gather(
        relay.publish(alice, make_message("a1", sender="alice"), room.room_id),
        relay.publish(bob, make_message("b1", sender="bob"), room.room_id),
    )

    stored = await store.find_room({"roomId": room.room_id})
    assert sorted(ids(stored)) == ["a1", "b1"]


@pytest.mark.asyncio
async def test_serialized_duplicate_publishes_store_one_copy(store, connections):
    room = await store.insert_room(Room(room_name="race"))
    relay = RelayService(store, connections, locks=RoomLockRegistry(), serialize_writes=True)
    sender = connections.register(FakeTransport())

    results = await asyncio.gather(*[
        relay.publish(sender, make_message("m1"), room.room_id) for _ in range(5)
    ])

    assert results.count(True) == 1
    stored = await store.find_room({"roomId": room.room_id})
    assert ids(stored) == ["m1"]


@pytest.mark.asyncio
async def test_publish_and_bulk_sync_are_serialized_per_room(store, connections):
    room = await store.insert_room(Room(room_name="race", messages=[make_message("m1")]))
    relay = RelayService(store, connections, locks=RoomLockRegistry(), serialize_writes=True)
    sender = connections.register(FakeTransport())

    await asyncio.gather(
        relay.publish(sender, make_message("live"), room.room_id),
        relay.update_message_list(room.room_id, [make_message("m1"), make_message("m2")]),
    )

    stored = await store.find_room({"roomId": room.room_id})
    # 어느 쪽이 먼저 실행되든 두 쓰기 모두 남아야 함
    assert {"live", "m2"} <= set(ids(stored))
    assert ids(stored)[0] == "m1"


class TestRoomLockRegistry:
    """채팅방 락 레지스트리 테스트"""

    @pytest.mark.asyncio
    async def test_same_lock_while_in_use(self):
        locks = RoomLockRegistry()

        lock = locks.get("r1")

        assert locks.get("r1") is lock
        assert len(locks) == 1

    @pytest.mark.asyncio
    async def test_locks_are_dropped_after_use(self, store, connections):
        locks = RoomLockRegistry()
        relay = RelayService(store, connections, locks=locks, serialize_writes=True)
        sender = connections.register(FakeTransport())
        rooms = [await store.insert_room(Room(room_name=f"room{i}")) for i in range(3)]

        for room in rooms:
            await relay.publish(sender, make_message("m1"), room.room_id)
            await relay.update_message_list(room.room_id, [make_message("m2")])
        gc.collect()

        assert len(locks) == 0
