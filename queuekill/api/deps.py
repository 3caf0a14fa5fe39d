"""
FastAPI dependencies — database session, auth guards and the notifier.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from queuekill.core.exceptions import ForbiddenError, UnauthorizedError
from queuekill.core.security import decode_access_token
from queuekill.db.session import async_session_factory
from queuekill.models.user import User, UserRole
from queuekill.realtime.notifier import QueueNotifier

# auto_error=False so missing credentials produce our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Real-time ───────────────────────────────────────────────────────
def get_notifier(request: Request) -> QueueNotifier:
    return request.app.state.notifier


# ── Auth dependencies ───────────────────────────────────────────────
async def _user_from_token(db: AsyncSession, token: str) -> User | None:
    payload = decode_access_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    if user_id is None or not str(user_id).isdigit():
        return None

    result = await db.execute(select(User).where(User.id == int(user_id)))
    return result.scalar_one_or_none()


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the bearer token and look up the user it names."""
    if credentials is None:
        raise UnauthorizedError("Authentication required")

    user = await _user_from_token(db, credentials.credentials)
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Like ``get_current_user`` but anonymous callers get ``None``."""
    if credentials is None:
        return None
    return await _user_from_token(db, credentials.credentials)


async def require_owner(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.OWNER:
        raise ForbiddenError("Access denied: OWNER role required")
    return current_user


async def require_customer(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.CUSTOMER:
        raise ForbiddenError("Access denied: CUSTOMER role required")
    return current_user
