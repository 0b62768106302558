"""
Restaurant Endpoints

Public catalogue reads; writes are reserved to the owning restaurateur
or an admin.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.api.access import ensure_restaurant_owner, get_restaurant_or_404, not_found
from marketplace.core.security import require_roles
from marketplace.database import get_db
from marketplace.models import Order, Restaurant, Restaurateur, User, UserRole
from marketplace.schemas import (
    ErrorResponse,
    RestaurantCreate,
    RestaurantDetail,
    RestaurantResponse,
    RestaurantUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants", tags=["Restaurants"])

owner_roles = require_roles(UserRole.RESTAURATEUR, UserRole.ADMIN)


@router.get("/", response_model=List[RestaurantResponse])
async def list_restaurants(
    city: Optional[str] = Query(None),
    cuisine_type: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[RestaurantResponse]:
    query = select(Restaurant).order_by(Restaurant.name.asc())
    if city:
        query = query.where(func.lower(Restaurant.city) == city.lower())
    if cuisine_type:
        query = query.where(func.lower(Restaurant.cuisine_type) == cuisine_type.lower())
    if is_active is not None:
        query = query.where(Restaurant.is_active.is_(is_active))

    result = await db.execute(query)
    return [RestaurantResponse.model_validate(r) for r in result.scalars().all()]


@router.get(
    "/{restaurant_id}",
    response_model=RestaurantDetail,
    responses={404: {"model": ErrorResponse}},
)
async def get_restaurant(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> RestaurantDetail:
    """Restaurant with its menu."""
    result = await db.execute(
        select(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .options(selectinload(Restaurant.menu_items))
    )
    restaurant = result.scalar_one_or_none()
    if not restaurant:
        raise not_found("Restaurant")
    return RestaurantDetail.model_validate(restaurant)


@router.post(
    "/",
    response_model=RestaurantResponse,
    status_code=status.HTTP_201_CREATED,
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_restaurant(
    data: RestaurantCreate,
    user: User = Depends(owner_roles),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    """Restaurateurs create for themselves; admins name the restaurateur."""
    if user.role == UserRole.ADMIN:
        if not data.restaurateur_id:
            raise HTTPException(status_code=400, detail="restaurateur_id is required")
        result = await db.execute(select(Restaurateur).where(Restaurateur.id == data.restaurateur_id))
        if not result.scalar_one_or_none():
            raise not_found("Restaurateur")
        restaurateur_id = data.restaurateur_id
    else:
        if user.restaurateur is None:
            raise HTTPException(status_code=403, detail="Forbidden")
        restaurateur_id = user.restaurateur.id

    restaurant = Restaurant(
        restaurateur_id=restaurateur_id,
        **data.model_dump(exclude={"restaurateur_id"}),
    )
    db.add(restaurant)
    await db.commit()

    logger.info(f"Restaurant created: {restaurant.name} ({restaurant.id})")
    return RestaurantResponse.model_validate(restaurant)


@router.put("/{restaurant_id}", response_model=RestaurantResponse)
async def update_restaurant(
    restaurant_id: str,
    data: RestaurantUpdate,
    user: User = Depends(owner_roles),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    restaurant = await get_restaurant_or_404(db, restaurant_id)
    ensure_restaurant_owner(user, restaurant)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(restaurant, field, value)
    await db.commit()

    return RestaurantResponse.model_validate(restaurant)


@router.delete("/{restaurant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_restaurant(
    restaurant_id: str,
    user: User = Depends(owner_roles),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Delete a restaurant; one with order history is deactivated instead."""
    restaurant = await get_restaurant_or_404(db, restaurant_id)
    ensure_restaurant_owner(user, restaurant)

    orders = await db.execute(
        select(func.count(Order.id)).where(Order.restaurant_id == restaurant_id)
    )
    if orders.scalar():
        restaurant.is_active = False
        logger.info(f"Restaurant {restaurant_id} deactivated (has orders)")
    else:
        await db.delete(restaurant)
        logger.info(f"Restaurant {restaurant_id} deleted")
    await db.commit()

    return Response(status_code=status.HTTP_204_NO_CONTENT)
