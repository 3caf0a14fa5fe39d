"""
Queue & QueueEntry models — the waitlist domain.

``QueueEntry.position`` is a ticket number handed out at join time and
never reassigned; the live rank of an entry is derived by counting the
WAITING entries with a smaller position.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (Boolean, Column, DateTime, Enum, ForeignKey, Index,
                        Integer, String, UniqueConstraint)
from sqlalchemy.orm import relationship

from queuekill.core.exceptions import ConflictError
from queuekill.db.base import Base


class EntryStatus(str, enum.Enum):
    WAITING = "WAITING"
    CALLED = "CALLED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = frozenset({EntryStatus.WAITING, EntryStatus.CALLED})
TERMINAL_STATUSES = frozenset({EntryStatus.COMPLETED, EntryStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[EntryStatus, frozenset[EntryStatus]] = {
    # WAITING → COMPLETED: served without being called first
    EntryStatus.WAITING: frozenset(
        {EntryStatus.CALLED, EntryStatus.COMPLETED, EntryStatus.CANCELLED}
    ),
    EntryStatus.CALLED: frozenset({EntryStatus.COMPLETED, EntryStatus.CANCELLED}),
    EntryStatus.COMPLETED: frozenset(),
    EntryStatus.CANCELLED: frozenset(),
}


class Queue(Base):
    __tablename__ = "queues"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    restaurant_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("restaurants.id"), nullable=False, index=True
    )
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    restaurant = relationship("Restaurant", back_populates="queues")
    entries = relationship(
        "QueueEntry",
        back_populates="queue",
        order_by="QueueEntry.position",
        cascade="all, delete-orphan",
    )


class QueueEntry(Base):
    __tablename__ = "queue_entries"
    __table_args__ = (
        UniqueConstraint("queue_id", "position", name="uq_entry_queue_position"),
        Index("ix_entry_queue_status", "queue_id", "status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    queue_id: int = Column(Integer, ForeignKey("queues.id"), nullable=False)  # type: ignore[assignment]
    # NULL for anonymous joins
    user_id: int | None = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    phone: str | None = Column(String(30), nullable=True)  # type: ignore[assignment]
    group_size: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]
    position: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    status: EntryStatus = Column(  # type: ignore[assignment]
        Enum(EntryStatus, native_enum=False, length=20),
        nullable=False,
        default=EntryStatus.WAITING,
    )
    called_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    completed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    cancelled_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    queue = relationship("Queue", back_populates="entries")

    def transition_to(self, new_status: EntryStatus) -> None:
        """Move the entry to *new_status*, stamping the matching timestamp.

        Raises ``ConflictError`` (leaving the entry untouched) when the
        move is not allowed from the current status.
        """
        current = EntryStatus(self.status)
        if new_status not in ALLOWED_TRANSITIONS[current]:
            if current.is_terminal:
                raise ConflictError(f"Entry is already {current.value.lower()}")
            raise ConflictError(
                f"Cannot move entry from {current.value} to {new_status.value}"
            )

        now = datetime.now(timezone.utc)
        self.status = new_status
        if new_status is EntryStatus.CALLED:
            self.called_at = now
        elif new_status is EntryStatus.COMPLETED:
            self.completed_at = now
        elif new_status is EntryStatus.CANCELLED:
            self.cancelled_at = now
