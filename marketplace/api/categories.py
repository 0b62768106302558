"""
Dish Category Endpoints

Categories are global. Approved restaurateurs and admins manage them;
each gets a unique URL slug derived from its name.
"""

import logging
import re
import unicodedata
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import not_found
from marketplace.core.security import get_current_user
from marketplace.database import get_db
from marketplace.models import Category, User, UserRole
from marketplace.schemas import CategoryCreate, CategoryResponse, CategoryUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/categories", tags=["Categories"])

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """'Plats épicés !' -> 'plats-epices'"""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_ALNUM.sub("-", stripped.lower().strip()).strip("-")


async def _unique_slug(db: AsyncSession, base: str, exclude_id: Optional[str] = None) -> str:
    slug = base
    suffix = 1
    while True:
        result = await db.execute(select(Category.id).where(Category.slug == slug))
        existing = result.scalar_one_or_none()
        if existing is None or existing == exclude_id:
            return slug
        suffix += 1
        slug = f"{base}-{suffix}"


def _normalise_name(name: str) -> tuple[str, str]:
    name = name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Category name is required")
    base = slugify(name)
    if not base:
        raise HTTPException(status_code=400, detail="Category name is invalid")
    return name, base


async def category_manager(user: User = Depends(get_current_user)) -> User:
    """Admins, or restaurateurs whose account has been approved."""
    if user.role == UserRole.ADMIN:
        return user
    if user.restaurateur is None:
        raise HTTPException(status_code=403, detail="Only restaurateurs can manage categories")
    if not user.restaurateur.is_approved:
        raise HTTPException(status_code=403, detail="Compte restaurateur en attente de validation admin")
    return user


async def _get_category_or_404(db: AsyncSession, category_id: str) -> Category:
    result = await db.execute(select(Category).where(Category.id == category_id))
    category = result.scalar_one_or_none()
    if not category:
        raise not_found("Category")
    return category


@router.get("/", response_model=List[CategoryResponse])
async def list_categories(
    active: bool = Query(False, description="Only active categories"),
    db: AsyncSession = Depends(get_db),
) -> List[CategoryResponse]:
    query = select(Category).order_by(Category.name.asc())
    if active:
        query = query.where(Category.is_active.is_(True))
    result = await db.execute(query)
    return [CategoryResponse.model_validate(c) for c in result.scalars().all()]


@router.post("/", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    _: User = Depends(category_manager),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    name, base = _normalise_name(data.name)
    category = Category(
        name=name,
        slug=await _unique_slug(db, base),
        description=data.description.strip() if data.description else None,
        image_url=data.image_url.strip() if data.image_url else None,
        is_active=data.is_active,
    )
    db.add(category)
    await db.commit()

    logger.info(f"Category created: {category.slug}")
    return CategoryResponse.model_validate(category)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: str,
    data: CategoryUpdate,
    _: User = Depends(category_manager),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    category = await _get_category_or_404(db, category_id)
    changes = data.model_dump(exclude_unset=True)

    if "name" in changes:
        name, base = _normalise_name(changes.pop("name") or "")
        category.name = name
        category.slug = await _unique_slug(db, base, exclude_id=category.id)
    for field in ("description", "image_url"):
        if field in changes:
            value = changes[field]
            setattr(category, field, value.strip() if value else None)
    if changes.get("is_active") is not None:
        category.is_active = changes["is_active"]

    await db.commit()
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: str,
    _: User = Depends(category_manager),
    db: AsyncSession = Depends(get_db),
) -> Response:
    category = await _get_category_or_404(db, category_id)
    await db.delete(category)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
