"""
Restaurant model — one per owner account.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from queuekill.db.base import Base


class Restaurant(Base):
    __tablename__ = "restaurants"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False, index=True)  # type: ignore[assignment]
    address: str = Column(String(500), nullable=False)  # type: ignore[assignment]
    type: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    long_description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    menu_text: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    owner_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id"), unique=True, nullable=False
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    owner = relationship("User", back_populates="restaurant")
    queues = relationship(
        "Queue",
        back_populates="restaurant",
        cascade="all, delete-orphan",
    )
