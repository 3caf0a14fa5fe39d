"""
Queue endpoints — owner management, customer join/leave, QR codes.

Mutations commit first; the resulting state is then pushed to socket
rooms. Broadcast failures are logged and never change the response.

- Owner routes: create, call-next, complete, remove, delete, my-queues.
- Customer routes: leave, my-entries.
- Public routes: queue info, join (optionally authenticated), QR code.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from queuekill.api.deps import (get_current_user, get_db, get_notifier,
                                get_optional_user, require_customer,
                                require_owner)
from queuekill.core.exceptions import NotFoundError
from queuekill.models.user import User
from queuekill.realtime.notifier import QueueNotifier
from queuekill.schemas.base import ApiResponse
from queuekill.schemas.queue import (ActiveEntryRead, JoinQueueRequest,
                                     QueueCreate, QueueDetail, QueueEntryRead,
                                     QueueRead)
from queuekill.services import queue_service

router = APIRouter(prefix="/queues", tags=["queues"])
logger = logging.getLogger(__name__)


# ── Notification helpers ────────────────────────────────────────────
async def _broadcast_queue(db: AsyncSession, notifier: QueueNotifier, queue_id: int) -> None:
    """Re-read the committed queue and send the snapshot to its room."""
    try:
        queue = await queue_service.get_queue_by_id(db, queue_id)
        await notifier.broadcast_queue_update(queue_id, QueueDetail.model_validate(queue).to_wire())
    except Exception as e:
        logger.error("Failed to broadcast update for queue %s: %s", queue_id, e)


async def _send_position_notifications(
    db: AsyncSession, notifier: QueueNotifier, queue_id: int
) -> None:
    """Tell the users now at rank 1 and rank 3 that they are close."""
    try:
        notices = await queue_service.get_entries_for_position_notification(db, queue_id)
        for notice in notices:
            await notifier.notify_position_update(
                notice.entry.user_id,
                entry_id=notice.entry.id,
                queue_id=notice.entry.queue_id,
                queue_name=notice.queue_name,
                restaurant_name=notice.restaurant_name,
                new_position=notice.new_position,
            )
    except Exception as e:
        logger.error("Failed to send position notifications for queue %s: %s", queue_id, e)


# ── Caller-scoped lists (must precede /{queue_id}) ──────────────────
@router.get("/my-entries", response_model=ApiResponse[list[ActiveEntryRead]])
async def my_entries(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ApiResponse[list[ActiveEntryRead]]:
    """Active entries of the caller with how many parties are ahead."""
    active = await queue_service.get_user_active_entries(db, current_user.id)
    data = [
        ActiveEntryRead.model_validate(
            {
                **QueueEntryRead.model_validate(a.entry).model_dump(),
                "queue": a.entry.queue,
                "position_ahead": a.position_ahead,
                "estimated_wait": a.estimated_wait,
            }
        )
        for a in active
    ]
    return ApiResponse[list[ActiveEntryRead]](data=data)


@router.get("/my-queues", response_model=ApiResponse[list[QueueDetail]])
async def my_queues(
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
) -> ApiResponse[list[QueueDetail]]:
    queues = await queue_service.get_queues_by_owner(db, owner.id)
    return ApiResponse[list[QueueDetail]](data=[QueueDetail.model_validate(q) for q in queues])


# ── Queue management ────────────────────────────────────────────────
@router.post("", response_model=ApiResponse[QueueRead], status_code=201)
async def create_queue(
    body: QueueCreate,
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
) -> ApiResponse[QueueRead]:
    restaurant = await queue_service.get_restaurant_by_owner(db, owner.id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found. Please create a restaurant first.")

    queue = await queue_service.create_queue(db, restaurant.id, body.name)
    return ApiResponse[QueueRead](
        message="Queue created successfully",
        data=QueueRead.model_validate(queue),
    )


@router.get("/{queue_id}", response_model=ApiResponse[QueueDetail])
async def get_queue(
    queue_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[QueueDetail]:
    queue = await queue_service.get_queue_by_id(db, queue_id)
    return ApiResponse[QueueDetail](data=QueueDetail.model_validate(queue))


@router.delete("/{queue_id}", response_model=ApiResponse[None])
async def delete_queue(
    queue_id: int,
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
    notifier: QueueNotifier = Depends(get_notifier),
) -> ApiResponse[None]:
    """Delete a queue; watchers and every affected user are told it closed."""
    deleted = await queue_service.delete_queue(db, queue_id, owner.id)

    await notifier.notify_queue_deleted(
        deleted.queue_id,
        queue_name=deleted.queue_name,
        restaurant_name=deleted.restaurant_name,
    )
    for user_id in deleted.active_user_ids:
        await notifier.notify_user_queue_deleted(
            user_id,
            queue_id=deleted.queue_id,
            queue_name=deleted.queue_name,
            restaurant_name=deleted.restaurant_name,
        )

    return ApiResponse[None](message="Queue deleted successfully")


@router.get("/{queue_id}/qrcode")
async def queue_qrcode(
    queue_id: int,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """PNG QR code pointing at the queue's join page."""
    queue = await queue_service.get_queue_by_id(db, queue_id)
    png = queue_service.generate_queue_qrcode(queue.id, queue.restaurant_id)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="queue-{queue_id}.png"'},
    )


# ── Entry lifecycle ─────────────────────────────────────────────────
@router.post("/{queue_id}/join", response_model=ApiResponse[QueueEntryRead], status_code=201)
async def join_queue(
    queue_id: int,
    body: JoinQueueRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    notifier: QueueNotifier = Depends(get_notifier),
) -> ApiResponse[QueueEntryRead]:
    """Join as a logged-in user or anonymously."""
    entry = await queue_service.join_queue(
        db,
        queue_id,
        current_user.id if current_user is not None else None,
        name=body.name,
        phone=body.phone,
        group_size=body.group_size,
    )
    data = QueueEntryRead.model_validate(entry)

    await _broadcast_queue(db, notifier, queue_id)

    return ApiResponse[QueueEntryRead](message="Successfully joined the queue", data=data)


@router.post("/entry/{entry_id}/leave", response_model=ApiResponse[QueueEntryRead])
async def leave_queue(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    customer: User = Depends(require_customer),
    notifier: QueueNotifier = Depends(get_notifier),
) -> ApiResponse[QueueEntryRead]:
    entry = await queue_service.leave_queue(db, entry_id, customer.id)
    data = QueueEntryRead.model_validate(entry)

    await _broadcast_queue(db, notifier, entry.queue_id)

    return ApiResponse[QueueEntryRead](message="Successfully left the queue", data=data)


@router.post("/{queue_id}/call-next", response_model=ApiResponse[QueueEntryRead])
async def call_next(
    queue_id: int,
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
    notifier: QueueNotifier = Depends(get_notifier),
) -> ApiResponse[QueueEntryRead]:
    await queue_service.verify_queue_ownership(db, queue_id, owner.id)

    entry = await queue_service.call_next(db, queue_id)
    if entry is None:
        return ApiResponse[QueueEntryRead](message="No one waiting in queue", data=None)

    data = QueueEntryRead.model_validate(entry)

    if entry.user_id is not None:
        await notifier.notify_user_called(
            entry.user_id,
            entry_id=entry.id,
            queue_id=queue_id,
            position=entry.position,
        )
    await _broadcast_queue(db, notifier, queue_id)
    await _send_position_notifications(db, notifier, queue_id)

    return ApiResponse[QueueEntryRead](message="Called next person", data=data)


@router.post("/entry/{entry_id}/complete", response_model=ApiResponse[QueueEntryRead])
async def complete_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
    notifier: QueueNotifier = Depends(get_notifier),
) -> ApiResponse[QueueEntryRead]:
    """Mark an entry as served."""
    await queue_service.get_entry_queue_for_owner(db, entry_id, owner.id)

    entry = await queue_service.complete_entry(db, entry_id)
    data = QueueEntryRead.model_validate(entry)

    await _broadcast_queue(db, notifier, entry.queue_id)
    await _send_position_notifications(db, notifier, entry.queue_id)

    return ApiResponse[QueueEntryRead](message="Entry completed successfully", data=data)


@router.post("/entry/{entry_id}/remove", response_model=ApiResponse[QueueEntryRead])
async def remove_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
    notifier: QueueNotifier = Depends(get_notifier),
) -> ApiResponse[QueueEntryRead]:
    """Remove an entry (no-show or manual removal)."""
    await queue_service.get_entry_queue_for_owner(db, entry_id, owner.id)

    entry = await queue_service.remove_entry(db, entry_id)
    data = QueueEntryRead.model_validate(entry)

    await _broadcast_queue(db, notifier, entry.queue_id)
    await _send_position_notifications(db, notifier, entry.queue_id)

    return ApiResponse[QueueEntryRead](message="Entry removed successfully", data=data)
