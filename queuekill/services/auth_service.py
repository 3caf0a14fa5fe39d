"""
Registration and login for customers and restaurant owners.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from queuekill.core.exceptions import ConflictError, UnauthorizedError
from queuekill.core.security import create_access_token, get_password_hash, verify_password
from queuekill.models.queue import Queue
from queuekill.models.restaurant import Restaurant
from queuekill.models.user import User, UserRole
from queuekill.schemas.user import RegisterCustomerRequest, RegisterOwnerRequest

logger = logging.getLogger(__name__)


@dataclass
class OwnerRegistration:
    user: User
    restaurant: Restaurant
    queue: Queue | None
    token: str


def issue_token(user: User) -> str:
    return create_access_token(user.id, role=UserRole(user.role).value)


async def _ensure_email_free(db: AsyncSession, email: str) -> None:
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email already registered")


async def register_customer(db: AsyncSession, body: RegisterCustomerRequest) -> tuple[User, str]:
    await _ensure_email_free(db, body.email)

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        name=body.name,
        phone=body.phone,
        role=UserRole.CUSTOMER,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Customer registered: %s (id=%s)", user.email, user.id)
    return user, issue_token(user)


async def register_owner(db: AsyncSession, body: RegisterOwnerRequest) -> OwnerRegistration:
    """Create the owner, their restaurant and optionally a first queue together."""
    await _ensure_email_free(db, body.email)

    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        name=body.name,
        phone=body.phone,
        role=UserRole.OWNER,
    )
    db.add(user)
    await db.flush()

    restaurant = Restaurant(
        name=body.restaurant_name,
        address=body.restaurant_address,
        type=body.restaurant_type,
        description=body.restaurant_description,
        long_description=body.restaurant_long_description,
        menu_text=body.restaurant_menu_text,
        owner_id=user.id,
    )
    db.add(restaurant)
    await db.flush()

    queue = None
    if body.initial_queue_name and body.initial_queue_name.strip():
        queue = Queue(name=body.initial_queue_name.strip(), restaurant_id=restaurant.id, is_active=True)
        db.add(queue)

    await db.commit()
    await db.refresh(user)
    await db.refresh(restaurant)
    if queue is not None:
        await db.refresh(queue)

    logger.info("Owner registered: %s with restaurant %r", user.email, restaurant.name)
    return OwnerRegistration(user=user, restaurant=restaurant, queue=queue, token=issue_token(user))


async def login(db: AsyncSession, email: str, password: str) -> tuple[User, str]:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(password, user.hashed_password):
        raise UnauthorizedError("Invalid email or password")
    return user, issue_token(user)
