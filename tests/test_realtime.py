"""Tests for room membership, socket room events and notifier payloads."""

import pytest

from conftest import RecordingEmitter
from queuekill.realtime.notifier import (QueueNotifier, position_message,
                                         queue_closed_message)
from queuekill.realtime.registry import RoomRegistry, queue_room, user_room
from queuekill.realtime.sockets import create_socket_server, register_socket_handlers


# ── Registry ────────────────────────────────────────────────────────
def test_room_names():
    assert queue_room(7) == "queue-7"
    assert user_room("12") == "user-12"


def test_registry_join_leave():
    registry = RoomRegistry()
    registry.join("a", "queue-1")
    registry.join("b", "queue-1")
    registry.join("a", "user-9")

    assert registry.members("queue-1") == {"a", "b"}
    assert registry.rooms_of("a") == {"queue-1", "user-9"}
    assert len(registry) == 2

    registry.leave("b", "queue-1")
    assert registry.members("queue-1") == {"a"}
    assert registry.rooms_of("b") == frozenset()
    assert len(registry) == 1


def test_registry_discard_forgets_every_membership():
    registry = RoomRegistry()
    registry.join("a", "queue-1")
    registry.join("a", "user-9")

    assert registry.discard("a") == {"queue-1", "user-9"}
    assert registry.members("queue-1") == frozenset()
    assert registry.members("user-9") == frozenset()
    assert len(registry) == 0
    assert registry.discard("a") == set()


def test_registry_joining_twice_is_idempotent():
    registry = RoomRegistry()
    registry.join("a", "queue-1")
    registry.join("a", "queue-1")
    registry.leave("a", "queue-1")
    assert registry.members("queue-1") == frozenset()


def test_leave_unknown_room_is_noop():
    registry = RoomRegistry()
    registry.leave("ghost", "queue-1")
    assert len(registry) == 0


# ── Socket handlers ─────────────────────────────────────────────────
@pytest.fixture
def socket_handlers():
    registry = RoomRegistry()
    sio = create_socket_server()
    register_socket_handlers(sio, registry)
    return sio.handlers["/"], registry


@pytest.mark.asyncio
async def test_join_and_leave_queue_room(socket_handlers):
    handlers, registry = socket_handlers
    await handlers["connect"]("sid-1", {})
    await handlers["joinQueueRoom"]("sid-1", 5)
    await handlers["joinUserRoom"]("sid-1", "42")

    assert registry.members("queue-5") == {"sid-1"}
    assert registry.members("user-42") == {"sid-1"}

    await handlers["leaveQueueRoom"]("sid-1", "5")
    assert registry.members("queue-5") == frozenset()
    assert registry.members("user-42") == {"sid-1"}


@pytest.mark.asyncio
async def test_invalid_room_id_ignored(socket_handlers):
    handlers, registry = socket_handlers
    await handlers["joinQueueRoom"]("sid-1", "../admin")
    await handlers["joinQueueRoom"]("sid-1", None)
    await handlers["joinUserRoom"]("sid-1", True)
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_disconnect_removes_sid_from_all_rooms(socket_handlers):
    handlers, registry = socket_handlers
    await handlers["joinQueueRoom"]("sid-1", 1)
    await handlers["joinUserRoom"]("sid-1", 2)

    await handlers["disconnect"]("sid-1")

    assert registry.rooms_of("sid-1") == frozenset()
    assert registry.members("queue-1") == frozenset()


# ── Notifier ────────────────────────────────────────────────────────
def test_position_messages():
    assert position_message(1, "Luigi's") == "🔔 You're next! Get ready at Luigi's"
    assert position_message(3, "Luigi's") == "⏳ Almost there! You're #3 in line at Luigi's"


def test_queue_closed_messages():
    assert queue_closed_message("Dinner", "Luigi's") == 'The queue "Dinner" at Luigi\'s has been closed.'
    assert queue_closed_message("Dinner", "Luigi's", removed=True) == (
        'The queue "Dinner" at Luigi\'s has been closed. You have been removed from the queue.'
    )


@pytest.mark.asyncio
async def test_broadcast_reaches_only_room_members():
    emitter, registry = RecordingEmitter(), RoomRegistry()
    notifier = QueueNotifier(emitter, registry)
    registry.join("a", queue_room(1))
    registry.join("b", queue_room(2))

    await notifier.broadcast_queue_update(1, {"id": 1, "entries": []})

    assert emitter.events == [("queueUpdated", {"queue": {"id": 1, "entries": []}}, "a")]


@pytest.mark.asyncio
async def test_user_called_payload():
    emitter, registry = RecordingEmitter(), RoomRegistry()
    notifier = QueueNotifier(emitter, registry)
    registry.join("phone", user_room(3))
    registry.join("laptop", user_room(3))

    await notifier.notify_user_called(3, entry_id=10, queue_id=1, position=4)

    payloads = emitter.named("userCalled")
    assert {target for _, target in payloads} == {"phone", "laptop"}
    assert payloads[0][0] == {"entryId": 10, "queueId": 1, "position": 4}


@pytest.mark.asyncio
async def test_empty_room_emits_nothing():
    emitter = RecordingEmitter()
    notifier = QueueNotifier(emitter, RoomRegistry())
    await notifier.notify_queue_deleted(1, queue_name="Dinner", restaurant_name="Luigi's")
    assert emitter.events == []


@pytest.mark.asyncio
async def test_one_failing_connection_does_not_block_others():
    registry = RoomRegistry()
    registry.join("bad", queue_room(1))
    registry.join("good", queue_room(1))
    delivered = []

    class FlakyEmitter:
        async def emit(self, event, data=None, *, to=None):
            if to == "bad":
                raise ConnectionError("closed")
            delivered.append(to)

    notifier = QueueNotifier(FlakyEmitter(), registry)
    await notifier.broadcast_queue_update(1, {"id": 1})
    assert delivered == ["good"]


@pytest.mark.asyncio
async def test_user_queue_deleted_payload():
    emitter, registry = RecordingEmitter(), RoomRegistry()
    notifier = QueueNotifier(emitter, registry)
    registry.join("phone", user_room(8))

    await notifier.notify_user_queue_deleted(8, queue_id=2, queue_name="Dinner", restaurant_name="Luigi's")

    (event, data, target), = emitter.events
    assert (event, target) == ("queueDeleted", "phone")
    assert data["queueId"] == 2
    assert data["message"].endswith("You have been removed from the queue.")
