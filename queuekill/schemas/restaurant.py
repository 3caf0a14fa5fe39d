"""Pydantic schemas for restaurant browsing and profile edits."""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from queuekill.schemas.base import CamelModel


class RestaurantRead(CamelModel):
    id: int
    name: str
    address: str
    type: str | None = None
    description: str | None = None
    long_description: str | None = None
    menu_text: str | None = None
    owner_id: int
    created_at: datetime | None = None


class RestaurantUpdate(CamelModel):
    name: str | None = None
    address: str | None = None
    type: str | None = None
    description: str | None = None
    long_description: str | None = None
    menu_text: str | None = None

    @field_validator("name", "address")
    @classmethod
    def _not_blank(cls, v: str | None) -> str:
        # Omitted is fine (not validated); an explicit null is not
        if v is None or not v.strip():
            raise ValueError("Must not be empty")
        return v.strip()


class QueueSummary(CamelModel):
    id: int
    name: str
    is_active: bool
    waiting_count: int


class RestaurantListItem(RestaurantRead):
    queues: list[QueueSummary] = []
