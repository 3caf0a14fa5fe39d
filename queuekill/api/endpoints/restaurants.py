"""
Restaurant endpoints — public browsing/search and the owner's profile.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from queuekill.api.deps import get_db, require_owner
from queuekill.core.exceptions import NotFoundError
from queuekill.models.user import User
from queuekill.schemas.base import ApiResponse
from queuekill.schemas.queue import RestaurantDetail
from queuekill.schemas.restaurant import (RestaurantListItem, RestaurantRead,
                                          RestaurantUpdate)
from queuekill.services import queue_service, restaurant_service

router = APIRouter(prefix="/restaurants", tags=["restaurants"])
logger = logging.getLogger(__name__)


# ── Owner's restaurant (must precede /{restaurant_id}) ──────────────
@router.get("/my-restaurant", response_model=ApiResponse[RestaurantRead])
async def my_restaurant(
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
) -> ApiResponse[RestaurantRead]:
    restaurant = await queue_service.get_restaurant_by_owner(db, owner.id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return ApiResponse[RestaurantRead](data=RestaurantRead.model_validate(restaurant))


@router.patch("/my-restaurant", response_model=ApiResponse[RestaurantRead])
async def update_my_restaurant(
    body: RestaurantUpdate,
    db: AsyncSession = Depends(get_db),
    owner: User = Depends(require_owner),
) -> ApiResponse[RestaurantRead]:
    """Update profile fields; omitted fields are left untouched."""
    restaurant = await queue_service.get_restaurant_by_owner(db, owner.id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")

    updated = await restaurant_service.update_restaurant(
        db, restaurant.id, owner.id, body.model_dump(exclude_unset=True)
    )
    return ApiResponse[RestaurantRead](
        message="Restaurant updated successfully",
        data=RestaurantRead.model_validate(updated),
    )


# ── Public ──────────────────────────────────────────────────────────
@router.get("/search", response_model=ApiResponse[list[RestaurantListItem]])
async def search_restaurants(
    q: str = Query(default=""),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[list[RestaurantListItem]]:
    results = await restaurant_service.search_restaurants(db, q, limit)
    return ApiResponse[list[RestaurantListItem]](
        data=[RestaurantListItem.model_validate(r) for r in results]
    )


@router.get("", response_model=ApiResponse[list[RestaurantListItem]])
async def list_restaurants(
    limit: int = Query(default=50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[list[RestaurantListItem]]:
    results = await restaurant_service.list_restaurants(db, limit)
    return ApiResponse[list[RestaurantListItem]](
        data=[RestaurantListItem.model_validate(r) for r in results]
    )


@router.get("/{restaurant_id}", response_model=ApiResponse[RestaurantDetail])
async def get_restaurant(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[RestaurantDetail]:
    detail = await restaurant_service.get_restaurant_detail(db, restaurant_id)
    return ApiResponse[RestaurantDetail](data=RestaurantDetail.model_validate(detail))
