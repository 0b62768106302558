"""
Lookup helpers shared by the routers.

Each loader answers 404 when the row is missing and 403 when the caller
may not touch it, so endpoints stay short.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import (
    Client,
    Delivery,
    Livreur,
    MenuItem,
    Order,
    Restaurant,
    Restaurateur,
    User,
    UserRole,
)


def forbidden() -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found")


async def get_user_or_404(db: AsyncSession, user_id: str, refresh: bool = False) -> User:
    query = select(User).where(User.id == user_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    user = result.scalar_one_or_none()
    if not user:
        raise not_found("User")
    return user


async def get_restaurant_or_404(db: AsyncSession, restaurant_id: str) -> Restaurant:
    result = await db.execute(select(Restaurant).where(Restaurant.id == restaurant_id))
    restaurant = result.scalar_one_or_none()
    if not restaurant:
        raise not_found("Restaurant")
    return restaurant


async def get_menu_item_or_404(db: AsyncSession, item_id: str) -> MenuItem:
    result = await db.execute(select(MenuItem).where(MenuItem.id == item_id))
    item = result.scalar_one_or_none()
    if not item:
        raise not_found("Menu item")
    return item


async def get_order_or_404(db: AsyncSession, order_id: str, refresh: bool = False) -> Order:
    query = select(Order).where(Order.id == order_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    order = result.scalar_one_or_none()
    if not order:
        raise not_found("Order")
    return order


async def get_delivery_or_404(db: AsyncSession, delivery_id: str, refresh: bool = False) -> Delivery:
    query = select(Delivery).where(Delivery.id == delivery_id)
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    delivery = result.scalar_one_or_none()
    if not delivery:
        raise not_found("Delivery")
    return delivery


def ensure_restaurant_owner(user: User, restaurant: Restaurant) -> None:
    if user.role == UserRole.ADMIN:
        return
    if user.restaurateur is None or restaurant.restaurateur_id != user.restaurateur.id:
        raise forbidden()


def ensure_order_access(user: User, order: Order) -> None:
    """Client of the order, owner of the restaurant, assigned courier or admin."""
    if user.role == UserRole.ADMIN:
        return
    if user.client is not None and order.client_id == user.client.id:
        return
    if user.restaurateur is not None and order.restaurant.restaurateur_id == user.restaurateur.id:
        return
    if (
        user.livreur is not None
        and order.delivery is not None
        and order.delivery.livreur_id == user.livreur.id
    ):
        return
    raise forbidden()


def require_client(user: User) -> Client:
    if user.client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client profile not found")
    return user.client


def require_livreur(user: User) -> Livreur:
    if user.livreur is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Livreur profile not found")
    return user.livreur


def require_restaurateur(user: User) -> Optional[Restaurateur]:
    if user.role == UserRole.ADMIN:
        return None
    if user.restaurateur is None:
        raise forbidden()
    return user.restaurateur
