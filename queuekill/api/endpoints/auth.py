"""
Auth endpoints — customer / owner registration, login, current user.
"""

from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from queuekill.api.deps import get_current_user, get_db
from queuekill.core.config import settings
from queuekill.models.user import User
from queuekill.schemas.base import ApiResponse
from queuekill.schemas.queue import QueueRead
from queuekill.schemas.restaurant import RestaurantRead
from queuekill.schemas.user import (AuthData, LoginRequest, OwnerAuthData,
                                    RegisterCustomerRequest,
                                    RegisterOwnerRequest, UserRead,
                                    UserSummary)
from queuekill.services import auth_service

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register-customer", response_model=ApiResponse[AuthData], status_code=201)
async def register_customer(
    body: RegisterCustomerRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthData]:
    user, token = await auth_service.register_customer(db, body)
    return ApiResponse[AuthData](
        message="Customer registered successfully",
        data=AuthData(user=UserSummary.model_validate(user), token=token),
    )


@router.post("/register-owner", response_model=ApiResponse[OwnerAuthData], status_code=201)
async def register_owner(
    body: RegisterOwnerRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[OwnerAuthData]:
    """Create an owner account together with its restaurant (and first queue)."""
    reg = await auth_service.register_owner(db, body)
    return ApiResponse[OwnerAuthData](
        message="Owner registered successfully",
        data=OwnerAuthData(
            user=UserSummary.model_validate(reg.user),
            token=reg.token,
            restaurant=RestaurantRead.model_validate(reg.restaurant),
            queue=QueueRead.model_validate(reg.queue) if reg.queue is not None else None,
        ),
    )


@router.post("/login", response_model=ApiResponse[AuthData])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[AuthData]:
    user, token = await auth_service.login(db, body.email, body.password)
    return ApiResponse[AuthData](
        message="Login successful",
        data=AuthData(user=UserSummary.model_validate(user), token=token),
    )


@router.get("/me", response_model=ApiResponse[UserRead])
async def read_current_user(
    current_user: User = Depends(get_current_user),
) -> ApiResponse[UserRead]:
    """Return profile of the currently authenticated user."""
    return ApiResponse[UserRead](data=UserRead.model_validate(current_user))
