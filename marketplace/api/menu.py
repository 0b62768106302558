"""
Menu Endpoints

Menu items belong to one restaurant; only its owner or an admin may
change them.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import ensure_restaurant_owner, get_menu_item_or_404, get_restaurant_or_404
from marketplace.core.security import require_roles
from marketplace.database import get_db
from marketplace.models import MenuItem, OrderItem, User, UserRole
from marketplace.schemas import ErrorResponse, MenuItemCreate, MenuItemResponse, MenuItemUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/menu", tags=["Menu"])

owner_roles = require_roles(UserRole.RESTAURATEUR, UserRole.ADMIN)


@router.get("/restaurant/{restaurant_id}", response_model=List[MenuItemResponse])
async def list_menu(
    restaurant_id: str,
    category: Optional[str] = Query(None),
    is_available: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> List[MenuItemResponse]:
    query = (
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id)
        .order_by(MenuItem.category.asc(), MenuItem.name.asc())
    )
    if category:
        query = query.where(MenuItem.category == category)
    if is_available is not None:
        query = query.where(MenuItem.is_available.is_(is_available))

    result = await db.execute(query)
    return [MenuItemResponse.model_validate(item) for item in result.scalars().all()]


@router.get("/{item_id}", response_model=MenuItemResponse, responses={404: {"model": ErrorResponse}})
async def get_menu_item(item_id: str, db: AsyncSession = Depends(get_db)) -> MenuItemResponse:
    return MenuItemResponse.model_validate(await get_menu_item_or_404(db, item_id))


@router.post("/", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_item(
    data: MenuItemCreate,
    user: User = Depends(owner_roles),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    restaurant = await get_restaurant_or_404(db, data.restaurant_id)
    ensure_restaurant_owner(user, restaurant)

    item = MenuItem(**data.model_dump())
    db.add(item)
    await db.commit()

    logger.info(f"Menu item created: {item.name} @ {restaurant.name}")
    return MenuItemResponse.model_validate(item)


@router.put("/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: str,
    data: MenuItemUpdate,
    user: User = Depends(owner_roles),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await get_menu_item_or_404(db, item_id)
    ensure_restaurant_owner(user, await get_restaurant_or_404(db, item.restaurant_id))

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(item, field, value)
    await db.commit()

    return MenuItemResponse.model_validate(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_menu_item(
    item_id: str,
    user: User = Depends(owner_roles),
    db: AsyncSession = Depends(get_db),
) -> Response:
    item = await get_menu_item_or_404(db, item_id)
    ensure_restaurant_owner(user, await get_restaurant_or_404(db, item.restaurant_id))

    ordered = await db.execute(
        select(func.count(OrderItem.id)).where(OrderItem.menu_item_id == item_id)
    )
    if ordered.scalar():
        # Order lines keep pointing at it
        item.is_available = False
    else:
        await db.delete(item)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
