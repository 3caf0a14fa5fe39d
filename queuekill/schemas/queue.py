"""Pydantic schemas for queues and queue entries."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from queuekill.models.queue import EntryStatus
from queuekill.schemas.base import CamelModel
from queuekill.schemas.restaurant import RestaurantRead


# ── Requests ────────────────────────────────────────────────────────
class QueueCreate(CamelModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Queue name is required")
        if len(v) > 200:
            raise ValueError("Queue name must not exceed 200 characters")
        return v


class JoinQueueRequest(CamelModel):
    name: str
    phone: str | None = None
    group_size: int = Field(ge=1)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


# ── Responses ───────────────────────────────────────────────────────
class QueueEntryRead(CamelModel):
    id: int
    queue_id: int
    user_id: int | None
    name: str
    phone: str | None
    group_size: int
    position: int
    status: EntryStatus
    called_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None


class QueueRead(CamelModel):
    id: int
    name: str
    restaurant_id: int
    is_active: bool
    created_at: datetime | None = None


class QueueDetail(QueueRead):
    """Full queue snapshot: restaurant plus entries ordered by position."""

    restaurant: RestaurantRead
    entries: list[QueueEntryRead]


class QueueWithWaiting(QueueRead):
    entries: list[QueueEntryRead]
    waiting_count: int


class RestaurantDetail(RestaurantRead):
    queues: list[QueueWithWaiting]


class ActiveEntryQueue(QueueRead):
    restaurant: RestaurantRead


class ActiveEntryRead(QueueEntryRead):
    queue: ActiveEntryQueue
    position_ahead: int
    estimated_wait: int
