"""
Restaurant browsing, search and owner profile edits.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, with_loader_criteria

from queuekill.core.exceptions import ForbiddenError, NotFoundError
from queuekill.models.queue import EntryStatus, Queue, QueueEntry
from queuekill.models.restaurant import Restaurant

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "address", "type", "description", "long_description", "menu_text")


async def _waiting_counts(db: AsyncSession, queue_ids: list[int]) -> dict[int, int]:
    """WAITING entry count per queue in a single grouped query."""
    if not queue_ids:
        return {}
    result = await db.execute(
        select(QueueEntry.queue_id, func.count(QueueEntry.id))
        .where(QueueEntry.queue_id.in_(queue_ids), QueueEntry.status == EntryStatus.WAITING)
        .group_by(QueueEntry.queue_id)
    )
    return {queue_id: count for queue_id, count in result.all()}


async def _with_queue_summaries(
    db: AsyncSession, restaurants: list[Restaurant]
) -> list[dict[str, Any]]:
    active = {r.id: [q for q in r.queues if q.is_active] for r in restaurants}
    counts = await _waiting_counts(db, [q.id for qs in active.values() for q in qs])

    items = []
    for restaurant in restaurants:
        items.append(
            {
                **_restaurant_fields(restaurant),
                "queues": [
                    {
                        "id": q.id,
                        "name": q.name,
                        "is_active": q.is_active,
                        "waiting_count": counts.get(q.id, 0),
                    }
                    for q in active[restaurant.id]
                ],
            }
        )
    return items


def _restaurant_fields(restaurant: Restaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "address": restaurant.address,
        "type": restaurant.type,
        "description": restaurant.description,
        "long_description": restaurant.long_description,
        "menu_text": restaurant.menu_text,
        "owner_id": restaurant.owner_id,
        "created_at": restaurant.created_at,
    }


async def search_restaurants(db: AsyncSession, query: str, limit: int = 20) -> list[dict[str, Any]]:
    """Case-insensitive substring match on name or address, A→Z."""
    pattern = f"%{query.strip().lower()}%"
    result = await db.execute(
        select(Restaurant)
        .where(
            or_(
                func.lower(Restaurant.name).like(pattern),
                func.lower(Restaurant.address).like(pattern),
            )
        )
        .options(selectinload(Restaurant.queues))
        .order_by(Restaurant.name.asc())
        .limit(limit)
    )
    return await _with_queue_summaries(db, list(result.scalars().all()))


async def list_restaurants(db: AsyncSession, limit: int = 50) -> list[dict[str, Any]]:
    """All restaurants for browsing, newest first."""
    result = await db.execute(
        select(Restaurant)
        .options(selectinload(Restaurant.queues))
        .order_by(Restaurant.created_at.desc(), Restaurant.id.desc())
        .limit(limit)
    )
    return await _with_queue_summaries(db, list(result.scalars().all()))


async def get_restaurant_detail(db: AsyncSession, restaurant_id: int) -> dict[str, Any]:
    """Restaurant with its active queues and their WAITING entries."""
    result = await db.execute(
        select(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .options(
            selectinload(Restaurant.queues).selectinload(Queue.entries),
            with_loader_criteria(QueueEntry, QueueEntry.status == EntryStatus.WAITING),
        )
        .execution_options(populate_existing=True)
    )
    restaurant = result.scalar_one_or_none()
    if restaurant is None:
        raise NotFoundError("Restaurant not found")

    return {
        **_restaurant_fields(restaurant),
        "queues": [
            {
                "id": q.id,
                "name": q.name,
                "restaurant_id": q.restaurant_id,
                "is_active": q.is_active,
                "created_at": q.created_at,
                "entries": q.entries,
                "waiting_count": len(q.entries),
            }
            for q in restaurant.queues
            if q.is_active
        ],
    }


async def update_restaurant(
    db: AsyncSession, restaurant_id: int, owner_id: int, changes: dict[str, Any]
) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    if restaurant.owner_id != owner_id:
        raise ForbiddenError("Unauthorized: You do not own this restaurant")

    for field, value in changes.items():
        if field in _EDITABLE_FIELDS:
            setattr(restaurant, field, value)

    await db.commit()
    await db.refresh(restaurant)
    logger.info("Restaurant %s updated: %s", restaurant_id, sorted(changes))
    return restaurant
