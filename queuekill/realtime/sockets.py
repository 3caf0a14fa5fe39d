"""
Socket.IO server and client → server room events.

Clients subscribe to ``queue-<id>`` rooms to watch a queue and to their
own ``user-<id>`` room for personal notifications.
"""

from __future__ import annotations

import logging

import socketio

from queuekill.core.config import settings
from queuekill.realtime.registry import RoomRegistry, queue_room, user_room

logger = logging.getLogger(__name__)


def create_socket_server() -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.socket_cors_origins,
        ping_interval=settings.SOCKET_PING_INTERVAL,
        ping_timeout=settings.SOCKET_PING_TIMEOUT,
        transports=["websocket", "polling"],
        logger=False,
        engineio_logger=False,
    )


def _room_id(value: object) -> str | None:
    """Accept a numeric id sent as int or string; reject anything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip().isdigit():
        return value.strip()
    return None


def register_socket_handlers(sio: socketio.AsyncServer, registry: RoomRegistry) -> None:
    """Wire connection lifecycle and room membership into *registry*."""

    @sio.event
    async def connect(sid, environ, auth=None):
        logger.info("[socket] Client connected: %s", sid)

    @sio.event
    async def disconnect(sid, reason=None):
        rooms = registry.discard(sid)
        logger.info("[socket] Client disconnected: %s (left %d rooms, reason=%s)", sid, len(rooms), reason)

    async def _join(sid: str, raw_id: object, room_for) -> None:
        room_key = _room_id(raw_id)
        if room_key is None:
            logger.warning("[socket] %s sent invalid room id %r", sid, raw_id)
            return
        room = room_for(room_key)
        registry.join(sid, room)
        logger.info("[socket] %s joined room: %s", sid, room)

    async def _leave(sid: str, raw_id: object, room_for) -> None:
        room_key = _room_id(raw_id)
        if room_key is None:
            return
        room = room_for(room_key)
        registry.leave(sid, room)
        logger.info("[socket] %s left room: %s", sid, room)

    @sio.on("joinQueueRoom")
    async def join_queue_room(sid, queue_id):
        await _join(sid, queue_id, queue_room)

    @sio.on("leaveQueueRoom")
    async def leave_queue_room(sid, queue_id):
        await _leave(sid, queue_id, queue_room)

    @sio.on("joinUserRoom")
    async def join_user_room(sid, user_id):
        await _join(sid, user_id, user_room)

    @sio.on("leaveUserRoom")
    async def leave_user_room(sid, user_id):
        await _leave(sid, user_id, user_room)
