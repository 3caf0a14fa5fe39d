"""
Connection registry — which socket connections are in which rooms.

The registry is process-local and only lives as long as the connections
it tracks: a sid is added when it asks to join a room and forgotten on
disconnect. Clients re-join their rooms after reconnecting.
"""

from __future__ import annotations

from collections import defaultdict


def queue_room(queue_id: int | str) -> str:
    return f"queue-{queue_id}"


def user_room(user_id: int | str) -> str:
    return f"user-{user_id}"


class RoomRegistry:
    def __init__(self) -> None:
        self._members: dict[str, set[str]] = defaultdict(set)
        self._rooms: dict[str, set[str]] = defaultdict(set)

    def join(self, sid: str, room: str) -> None:
        self._members[room].add(sid)
        self._rooms[sid].add(room)

    def leave(self, sid: str, room: str) -> None:
        members = self._members.get(room)
        if members is not None:
            members.discard(sid)
            if not members:
                del self._members[room]
        rooms = self._rooms.get(sid)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._rooms[sid]

    def discard(self, sid: str) -> set[str]:
        """Drop every membership of *sid*; returns the rooms it was in."""
        rooms = self._rooms.pop(sid, set())
        for room in rooms:
            members = self._members.get(room)
            if members is not None:
                members.discard(sid)
                if not members:
                    del self._members[room]
        return rooms

    def members(self, room: str) -> frozenset[str]:
        return frozenset(self._members.get(room, ()))

    def rooms_of(self, sid: str) -> frozenset[str]:
        return frozenset(self._rooms.get(sid, ()))

    def __len__(self) -> int:
        return len(self._rooms)
