"""
Content-based recommendations.

Restaurants and dishes are ranked with additive scores built from the
user's declared preferences and their order history. Every score comes
with the reasons that produced it.
"""

import logging
from collections import Counter
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.models import Client, MenuItem, Order, OrderItem, Restaurant
from marketplace.schemas import UserPreferences

logger = logging.getLogger(__name__)

CUISINE_WEIGHT = 40.0
FAVORITE_WEIGHT = 30.0
PRICE_WEIGHT = 20.0
HISTORY_WEIGHT = 4.0
HISTORY_CAP = 5
RATING_WEIGHT = 2.0
POPULARITY_CAP = 20


def _matches(value: str, candidates: list[str]) -> bool:
    value = value.lower()
    return any(c.lower() in value or value in c.lower() for c in candidates if c)


def _price_fit(prices: list[float], preferences: UserPreferences) -> float:
    """Share of prices inside the preferred range (1.0 when no range is set)."""
    if not preferences.price_range:
        return 1.0
    if not prices:
        return 0.0
    low, high = preferences.price_range.min, preferences.price_range.max
    return sum(1 for p in prices if low <= p <= high) / len(prices)


def score_restaurant(
    restaurant: Restaurant,
    preferences: UserPreferences,
    past_orders: int = 0,
) -> tuple[float, list[str]]:
    score = 0.0
    reasons = []

    if preferences.favorite_cuisines and _matches(restaurant.cuisine_type, preferences.favorite_cuisines):
        score += CUISINE_WEIGHT
        reasons.append(f"Cuisine {restaurant.cuisine_type}")

    if restaurant.id in preferences.favorite_restaurants:
        score += FAVORITE_WEIGHT
        reasons.append("Restaurant favori")

    prices = [item.price for item in restaurant.menu_items if item.is_available]
    fit = _price_fit(prices, preferences)
    if preferences.price_range and fit > 0:
        score += PRICE_WEIGHT * fit
        reasons.append("Dans votre budget")

    if past_orders:
        score += HISTORY_WEIGHT * min(past_orders, HISTORY_CAP)
        reasons.append(f"Déjà commandé {past_orders} fois")

    if restaurant.rating:
        score += RATING_WEIGHT * restaurant.rating

    return round(score, 2), reasons


def score_dish(
    item: MenuItem,
    preferences: UserPreferences,
    popularity: int = 0,
    ordered_by_user: int = 0,
) -> tuple[float, list[str]]:
    score = 0.0
    reasons = []

    if preferences.favorite_dishes and _matches(item.name, preferences.favorite_dishes):
        score += CUISINE_WEIGHT
        reasons.append("Plat favori")

    if preferences.price_range and _price_fit([item.price], preferences):
        score += PRICE_WEIGHT
        reasons.append("Dans votre budget")

    if ordered_by_user:
        score += HISTORY_WEIGHT * min(ordered_by_user, HISTORY_CAP)
        reasons.append("Vous l'avez déjà aimé")

    if popularity:
        score += min(popularity, POPULARITY_CAP)
        reasons.append("Populaire")

    return round(score, 2), reasons


async def _client_id_for(db: AsyncSession, user_id: str) -> Optional[str]:
    result = await db.execute(select(Client.id).where(Client.user_id == user_id))
    return result.scalar_one_or_none()


async def recommend_restaurants(
    db: AsyncSession,
    user_id: str,
    preferences: UserPreferences,
    limit: int = 10,
) -> list[dict]:
    result = await db.execute(
        select(Restaurant)
        .where(Restaurant.is_active.is_(True))
        .options(selectinload(Restaurant.menu_items))
    )
    restaurants = result.scalars().all()

    history: Counter = Counter()
    client_id = await _client_id_for(db, user_id)
    if client_id:
        rows = await db.execute(
            select(Order.restaurant_id, func.count(Order.id))
            .where(Order.client_id == client_id)
            .group_by(Order.restaurant_id)
        )
        history.update(dict(rows.all()))

    ranked = []
    for restaurant in restaurants:
        score, reasons = score_restaurant(restaurant, preferences, history.get(restaurant.id, 0))
        ranked.append({
            "restaurant_id": restaurant.id,
            "name": restaurant.name,
            "cuisine_type": restaurant.cuisine_type,
            "city": restaurant.city,
            "rating": restaurant.rating,
            "score": score,
            "reasons": reasons,
        })

    ranked.sort(key=lambda r: r["score"], reverse=True)
    logger.debug(f"Ranked {len(ranked)} restaurants for user {user_id}")
    return ranked[:limit]


async def recommend_dishes(
    db: AsyncSession,
    user_id: str,
    restaurant_id: str,
    preferences: UserPreferences,
    limit: int = 10,
) -> list[dict]:
    result = await db.execute(
        select(MenuItem).where(MenuItem.restaurant_id == restaurant_id, MenuItem.is_available.is_(True))
    )
    items = result.scalars().all()
    if not items:
        return []

    item_ids = [item.id for item in items]
    rows = await db.execute(
        select(OrderItem.menu_item_id, func.sum(OrderItem.quantity))
        .where(OrderItem.menu_item_id.in_(item_ids))
        .group_by(OrderItem.menu_item_id)
    )
    popularity = {menu_item_id: int(total or 0) for menu_item_id, total in rows.all()}

    mine: dict = {}
    client_id = await _client_id_for(db, user_id)
    if client_id:
        rows = await db.execute(
            select(OrderItem.menu_item_id, func.count(OrderItem.id))
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.client_id == client_id, OrderItem.menu_item_id.in_(item_ids))
            .group_by(OrderItem.menu_item_id)
        )
        mine = dict(rows.all())

    ranked = []
    for item in items:
        score, reasons = score_dish(item, preferences, popularity.get(item.id, 0), mine.get(item.id, 0))
        ranked.append({
            "menu_item_id": item.id,
            "name": item.name,
            "price": item.price,
            "category": item.category,
            "score": score,
            "reasons": reasons,
        })

    ranked.sort(key=lambda r: r["score"], reverse=True)
    return ranked[:limit]
