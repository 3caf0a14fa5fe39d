"""
Queue notifier — pushes already-committed queue state to socket rooms.

Every public method is best-effort: failures are logged and swallowed so
that a broken socket never fails the HTTP request that triggered it.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Protocol

from queuekill.realtime.registry import RoomRegistry, queue_room, user_room

logger = logging.getLogger(__name__)

# Server → client event names
QUEUE_UPDATED = "queueUpdated"
USER_CALLED = "userCalled"
POSITION_UPDATE = "positionUpdate"
QUEUE_DELETED = "queueDeleted"


class Emitter(Protocol):
    def emit(self, event: str, data: Any = None, *, to: str | None = None) -> Awaitable[None]: ...


def position_message(new_position: int, restaurant_name: str) -> str:
    if new_position == 1:
        return f"🔔 You're next! Get ready at {restaurant_name}"
    if new_position == 3:
        return f"⏳ Almost there! You're #3 in line at {restaurant_name}"
    return f"You're #{new_position} in line at {restaurant_name}"


def queue_closed_message(queue_name: str, restaurant_name: str, *, removed: bool = False) -> str:
    message = f'The queue "{queue_name}" at {restaurant_name} has been closed.'
    if removed:
        message += " You have been removed from the queue."
    return message


class QueueNotifier:
    def __init__(self, emitter: Emitter, registry: RoomRegistry) -> None:
        self.emitter = emitter
        self.registry = registry

    async def _send(self, room: str, event: str, payload: dict[str, Any]) -> int:
        """Emit *event* to every connection in *room*; returns the delivery count."""
        sids = self.registry.members(room)
        logger.info("Emitting %s to room %s (%d clients)", event, room, len(sids))
        delivered = 0
        for sid in sids:
            try:
                await self.emitter.emit(event, payload, to=sid)
                delivered += 1
            except Exception as e:
                logger.warning("Failed to emit %s to %s in %s: %s", event, sid, room, e)
        return delivered

    async def _safe_send(self, room: str, event: str, payload: dict[str, Any]) -> None:
        try:
            await self._send(room, event, payload)
        except Exception:
            logger.exception("Notification %s to %s failed", event, room)

    async def broadcast_queue_update(self, queue_id: int, queue: dict[str, Any]) -> None:
        """Send the full queue snapshot to everyone watching the queue."""
        await self._safe_send(queue_room(queue_id), QUEUE_UPDATED, {"queue": queue})

    async def notify_user_called(self, user_id: int, *, entry_id: int, queue_id: int, position: int) -> None:
        await self._safe_send(
            user_room(user_id),
            USER_CALLED,
            {"entryId": entry_id, "queueId": queue_id, "position": position},
        )

    async def notify_position_update(
        self,
        user_id: int,
        *,
        entry_id: int,
        queue_id: int,
        queue_name: str,
        restaurant_name: str,
        new_position: int,
    ) -> None:
        await self._safe_send(
            user_room(user_id),
            POSITION_UPDATE,
            {
                "entryId": entry_id,
                "queueId": queue_id,
                "queueName": queue_name,
                "restaurantName": restaurant_name,
                "newPosition": new_position,
                "message": position_message(new_position, restaurant_name),
            },
        )

    async def notify_queue_deleted(self, queue_id: int, *, queue_name: str, restaurant_name: str) -> None:
        await self._safe_send(
            queue_room(queue_id),
            QUEUE_DELETED,
            {
                "queueId": queue_id,
                "queueName": queue_name,
                "restaurantName": restaurant_name,
                "message": queue_closed_message(queue_name, restaurant_name),
            },
        )

    async def notify_user_queue_deleted(
        self, user_id: int, *, queue_id: int, queue_name: str, restaurant_name: str
    ) -> None:
        await self._safe_send(
            user_room(user_id),
            QUEUE_DELETED,
            {
                "queueId": queue_id,
                "queueName": queue_name,
                "restaurantName": restaurant_name,
                "message": queue_closed_message(queue_name, restaurant_name, removed=True),
            },
        )
