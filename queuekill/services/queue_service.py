"""
Queue business logic — joining, calling, completing and removing entries.

Every mutating function commits before it returns; broadcasting the new
state is the caller's job and happens only after that commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from io import BytesIO

import qrcode
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from queuekill.core.config import settings
from queuekill.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from queuekill.models.queue import ACTIVE_STATUSES, EntryStatus, Queue, QueueEntry
from queuekill.models.restaurant import Restaurant

logger = logging.getLogger(__name__)

MINUTES_PER_PARTY = 5
NOTIFY_RANKS = (1, 3)


@dataclass
class PositionNotice:
    entry: QueueEntry
    new_position: int
    queue_name: str
    restaurant_name: str


@dataclass
class DeletedQueue:
    queue_id: int
    queue_name: str
    restaurant_name: str
    active_user_ids: list[int] = field(default_factory=list)


@dataclass
class ActiveEntry:
    entry: QueueEntry
    position_ahead: int

    @property
    def estimated_wait(self) -> int:
        return self.position_ahead * MINUTES_PER_PARTY


# ── Lookups ─────────────────────────────────────────────────────────
async def _get_entry(db: AsyncSession, entry_id: int, *, lock: bool = False) -> QueueEntry:
    stmt = select(QueueEntry).where(QueueEntry.id == entry_id)
    if lock:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFoundError("Queue entry not found")
    return entry


async def get_queue_by_id(db: AsyncSession, queue_id: int) -> Queue:
    """Load a queue with its restaurant and entries ordered by position."""
    result = await db.execute(
        select(Queue)
        .where(Queue.id == queue_id)
        .options(selectinload(Queue.restaurant), selectinload(Queue.entries))
        .execution_options(populate_existing=True)
    )
    queue = result.scalar_one_or_none()
    if queue is None:
        raise NotFoundError("Queue not found")
    return queue


async def get_restaurant_by_owner(db: AsyncSession, owner_id: int) -> Restaurant | None:
    result = await db.execute(select(Restaurant).where(Restaurant.owner_id == owner_id))
    return result.scalar_one_or_none()


async def get_user_active_entry(
    db: AsyncSession, queue_id: int, user_id: int
) -> QueueEntry | None:
    """Return the user's WAITING or CALLED entry in this queue, if any."""
    result = await db.execute(
        select(QueueEntry)
        .where(
            QueueEntry.queue_id == queue_id,
            QueueEntry.user_id == user_id,
            QueueEntry.status.in_(ACTIVE_STATUSES),
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _get_queue_with_restaurant(db: AsyncSession, queue_id: int) -> Queue:
    result = await db.execute(
        select(Queue).where(Queue.id == queue_id).options(selectinload(Queue.restaurant))
    )
    queue = result.scalar_one_or_none()
    if queue is None:
        raise NotFoundError("Queue not found")
    return queue


async def verify_queue_ownership(db: AsyncSession, queue_id: int, owner_id: int) -> Queue:
    queue = await _get_queue_with_restaurant(db, queue_id)
    if queue.restaurant.owner_id != owner_id:
        raise ForbiddenError("Unauthorized: You do not own this queue")
    return queue


async def get_entry_queue_for_owner(db: AsyncSession, entry_id: int, owner_id: int) -> Queue:
    """Resolve the queue an entry belongs to, checking it is the owner's."""
    entry = await _get_entry(db, entry_id)
    return await verify_queue_ownership(db, entry.queue_id, owner_id)


# ── Queue management ────────────────────────────────────────────────
async def create_queue(db: AsyncSession, restaurant_id: int, name: str) -> Queue:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")

    queue = Queue(name=name, restaurant_id=restaurant_id, is_active=True)
    db.add(queue)
    await db.commit()
    await db.refresh(queue)
    logger.info("Queue %s (%r) created for restaurant %s", queue.id, name, restaurant_id)
    return queue


async def get_queues_by_owner(db: AsyncSession, owner_id: int) -> list[Queue]:
    """All queues of the owner's restaurant, newest first."""
    restaurant = await get_restaurant_by_owner(db, owner_id)
    if restaurant is None:
        return []

    result = await db.execute(
        select(Queue)
        .where(Queue.restaurant_id == restaurant.id)
        .options(selectinload(Queue.restaurant), selectinload(Queue.entries))
        .order_by(Queue.created_at.desc(), Queue.id.desc())
    )
    return list(result.scalars().all())


async def delete_queue(db: AsyncSession, queue_id: int, owner_id: int) -> DeletedQueue:
    """Delete a queue and all of its entries in one transaction.

    Returns the ids of users who still held an active entry so they can
    be told the queue is gone.
    """
    queue = await verify_queue_ownership(db, queue_id, owner_id)
    # Serialise against concurrent joins on this queue
    await db.execute(select(Queue.id).where(Queue.id == queue_id).with_for_update())

    result = await db.execute(
        select(QueueEntry.user_id)
        .where(
            QueueEntry.queue_id == queue_id,
            QueueEntry.status.in_(ACTIVE_STATUSES),
            QueueEntry.user_id.is_not(None),
        )
        .order_by(QueueEntry.position.asc())
    )
    active_user_ids = list(dict.fromkeys(result.scalars().all()))

    deleted = DeletedQueue(
        queue_id=queue.id,
        queue_name=queue.name,
        restaurant_name=queue.restaurant.name,
        active_user_ids=active_user_ids,
    )

    await db.execute(delete(QueueEntry).where(QueueEntry.queue_id == queue_id))
    await db.execute(delete(Queue).where(Queue.id == queue_id))
    await db.commit()

    logger.info(
        "Queue %s deleted by owner %s (%d active users affected)",
        queue_id,
        owner_id,
        len(active_user_ids),
    )
    return deleted


# ── Entry lifecycle ─────────────────────────────────────────────────
async def join_queue(
    db: AsyncSession,
    queue_id: int,
    user_id: int | None,
    *,
    name: str,
    group_size: int,
    phone: str | None = None,
) -> QueueEntry:
    """Add a party to the end of the queue.

    The new position is one past the highest position ever handed out in
    this queue. The queue row is locked for the read-then-insert and the
    ``(queue_id, position)`` constraint rejects any duplicate that slips
    through on backends without row locks.
    """
    result = await db.execute(
        select(Queue)
        .where(Queue.id == queue_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    queue = result.scalar_one_or_none()
    if queue is None:
        raise NotFoundError("Queue not found")
    if not queue.is_active:
        raise ConflictError("Queue is not active")

    if user_id is not None:
        existing = await get_user_active_entry(db, queue_id, user_id)
        if existing is not None:
            raise ConflictError("You are already in this queue")

    max_result = await db.execute(
        select(func.max(QueueEntry.position)).where(QueueEntry.queue_id == queue_id)
    )
    next_position = (max_result.scalar() or 0) + 1

    entry = QueueEntry(
        queue_id=queue_id,
        user_id=user_id,
        name=name,
        phone=phone,
        group_size=group_size,
        position=next_position,
        status=EntryStatus.WAITING,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)

    logger.info(
        "Entry %s joined queue %s at position %d (user=%s, party of %d)",
        entry.id,
        queue_id,
        next_position,
        user_id,
        group_size,
    )
    return entry


async def leave_queue(db: AsyncSession, entry_id: int, requester_id: int) -> QueueEntry:
    """Cancel an entry on behalf of the user who owns it."""
    entry = await _get_entry(db, entry_id, lock=True)

    # Anonymous entries have no owner to authorise
    if entry.user_id is None or entry.user_id != requester_id:
        raise ForbiddenError("Unauthorized: You can only cancel your own queue entry")

    entry.transition_to(EntryStatus.CANCELLED)
    await db.commit()
    await db.refresh(entry)
    logger.info("Entry %s left queue %s", entry.id, entry.queue_id)
    return entry


async def call_next(db: AsyncSession, queue_id: int) -> QueueEntry | None:
    """Call the WAITING entry with the lowest position, or return None."""
    result = await db.execute(
        select(QueueEntry)
        .where(QueueEntry.queue_id == queue_id, QueueEntry.status == EntryStatus.WAITING)
        .order_by(QueueEntry.position.asc())
        .limit(1)
        .with_for_update()
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        logger.debug("call_next on queue %s: nobody waiting", queue_id)
        return None

    entry.transition_to(EntryStatus.CALLED)
    await db.commit()
    await db.refresh(entry)
    logger.info("Called entry %s (position %d) in queue %s", entry.id, entry.position, queue_id)
    return entry


async def complete_entry(db: AsyncSession, entry_id: int) -> QueueEntry:
    """Mark an entry as served."""
    entry = await _get_entry(db, entry_id, lock=True)
    entry.transition_to(EntryStatus.COMPLETED)
    await db.commit()
    await db.refresh(entry)
    logger.info("Entry %s completed in queue %s", entry.id, entry.queue_id)
    return entry


async def remove_entry(db: AsyncSession, entry_id: int) -> QueueEntry:
    """Cancel an entry on the owner's side (no-show or manual removal)."""
    entry = await _get_entry(db, entry_id, lock=True)
    entry.transition_to(EntryStatus.CANCELLED)
    await db.commit()
    await db.refresh(entry)
    logger.info("Entry %s removed from queue %s", entry.id, entry.queue_id)
    return entry


# ── Derived views ───────────────────────────────────────────────────
async def get_entries_for_position_notification(
    db: AsyncSession, queue_id: int
) -> list[PositionNotice]:
    """Pick the user-bound WAITING entries now at rank 1 and rank 3."""
    result = await db.execute(
        select(QueueEntry)
        .where(
            QueueEntry.queue_id == queue_id,
            QueueEntry.status == EntryStatus.WAITING,
            QueueEntry.user_id.is_not(None),
        )
        .order_by(QueueEntry.position.asc())
        .limit(max(NOTIFY_RANKS))
    )
    waiting = list(result.scalars().all())
    if not waiting:
        return []

    queue = await _get_queue_with_restaurant(db, queue_id)
    notices = []
    for rank in NOTIFY_RANKS:
        if len(waiting) >= rank:
            notices.append(
                PositionNotice(
                    entry=waiting[rank - 1],
                    new_position=rank,
                    queue_name=queue.name,
                    restaurant_name=queue.restaurant.name,
                )
            )
    return notices


async def count_waiting_ahead(db: AsyncSession, entry: QueueEntry) -> int:
    """Number of WAITING entries in the same queue with a smaller position."""
    result = await db.execute(
        select(func.count(QueueEntry.id)).where(
            QueueEntry.queue_id == entry.queue_id,
            QueueEntry.status == EntryStatus.WAITING,
            QueueEntry.position < entry.position,
        )
    )
    return result.scalar() or 0


async def get_user_active_entries(db: AsyncSession, user_id: int) -> list[ActiveEntry]:
    """The user's WAITING/CALLED entries, newest first, with rank-ahead."""
    result = await db.execute(
        select(QueueEntry)
        .where(QueueEntry.user_id == user_id, QueueEntry.status.in_(ACTIVE_STATUSES))
        .options(selectinload(QueueEntry.queue).selectinload(Queue.restaurant))
        .order_by(QueueEntry.created_at.desc(), QueueEntry.id.desc())
    )
    entries = list(result.scalars().all())
    return [ActiveEntry(entry=e, position_ahead=await count_waiting_ahead(db, e)) for e in entries]


def generate_queue_qrcode(queue_id: int, restaurant_id: int) -> bytes:
    """PNG QR code deep-linking to the queue's join page."""
    url = f"{settings.FRONTEND_URL.rstrip('/')}/restaurant/{restaurant_id}/queue/{queue_id}"

    qr = qrcode.QRCode(version=1, box_size=10, border=1)
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
