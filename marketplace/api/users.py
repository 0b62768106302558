"""
User Profile Endpoints

Profile reads and updates for every role, plus the admin approval queue
for restaurateurs and couriers.
"""

import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import get_user_or_404, not_found
from marketplace.core.security import ensure_self_or_admin, get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import Livreur, Restaurant, Restaurateur, User, UserRole, utcnow
from marketplace.schemas import (
    ClientUpdate,
    LivreurProfile,
    LivreurUpdate,
    PendingAccount,
    RestaurantResponse,
    RestaurateurProfile,
    UserBrief,
    UserResponse,
    UserUpdate,
)
from marketplace.services.earnings import livreur_metrics
from marketplace.services.notifications.inbox import notify
from marketplace.services.support import record_audit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

admin_only = require_roles(UserRole.ADMIN)


# =============================================================================
# ADMIN APPROVALS
# =============================================================================

@router.get("/pending/restaurateurs", response_model=List[PendingAccount])
async def pending_restaurateurs(
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> List[PendingAccount]:
    result = await db.execute(
        select(Restaurateur).where(Restaurateur.is_approved.is_(False))
    )
    return [
        PendingAccount(
            user=UserBrief.model_validate(r.user),
            profile_id=r.id,
            created_at=r.user.created_at,
        )
        for r in result.scalars().all()
    ]


@router.get("/pending/livreurs", response_model=List[PendingAccount])
async def pending_livreurs(
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> List[PendingAccount]:
    result = await db.execute(select(Livreur).where(Livreur.is_approved.is_(False)))
    return [
        PendingAccount(
            user=UserBrief.model_validate(livreur.user),
            profile_id=livreur.id,
            created_at=livreur.user.created_at,
        )
        for livreur in result.scalars().all()
    ]


@router.put("/restaurateur/{user_id}/approve", response_model=UserResponse)
async def approve_restaurateur(
    user_id: str,
    admin: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await get_user_or_404(db, user_id)
    if user.restaurateur is None:
        raise not_found("Restaurateur profile")

    user.restaurateur.is_approved = True
    user.restaurateur.approved_at = utcnow()
    await notify(db, user, "Compte validé", "Votre compte restaurateur a été validé.", send_email=True)
    await record_audit(db, admin.id, "RESTAURATEUR_APPROVED", entity_type="User", entity_id=user.id)
    await db.commit()

    logger.info(f"Restaurateur approved: {user.email}")
    return UserResponse.model_validate(await get_user_or_404(db, user_id, refresh=True))


@router.put("/livreur/{user_id}/approve", response_model=UserResponse)
async def approve_livreur(
    user_id: str,
    admin: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await get_user_or_404(db, user_id)
    if user.livreur is None:
        raise not_found("Livreur profile")

    user.livreur.is_approved = True
    user.livreur.approved_at = utcnow()
    await notify(db, user, "Compte validé", "Votre compte livreur a été validé.", send_email=True)
    await record_audit(db, admin.id, "LIVREUR_APPROVED", entity_type="User", entity_id=user.id)
    await db.commit()

    logger.info(f"Livreur approved: {user.email}")
    return UserResponse.model_validate(await get_user_or_404(db, user_id, refresh=True))


# =============================================================================
# PROFILES
# =============================================================================

@router.get("/restaurateur/{user_id}")
async def get_restaurateur(
    user_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Restaurateur profile with its restaurants."""
    ensure_self_or_admin(current, user_id)
    user = await get_user_or_404(db, user_id)
    if user.restaurateur is None:
        raise not_found("Restaurateur profile")

    result = await db.execute(
        select(Restaurant)
        .where(Restaurant.restaurateur_id == user.restaurateur.id)
        .order_by(Restaurant.created_at.asc())
    )
    return {
        "user": UserBrief.model_validate(user),
        "profile": RestaurateurProfile.model_validate(user.restaurateur),
        "restaurants": [RestaurantResponse.model_validate(r) for r in result.scalars().all()],
    }


@router.get("/livreur/{user_id}")
async def get_livreur(
    user_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Courier profile with activity stats."""
    ensure_self_or_admin(current, user_id)
    user = await get_user_or_404(db, user_id)
    if user.livreur is None:
        raise not_found("Livreur profile")

    metrics = await livreur_metrics(db, user.livreur)
    return {
        "user": UserBrief.model_validate(user),
        "profile": LivreurProfile.model_validate(user.livreur),
        "stats": metrics["stats"],
    }


@router.put("/client/{user_id}", response_model=UserResponse)
async def update_client(
    user_id: str,
    data: ClientUpdate,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    ensure_self_or_admin(current, user_id)
    user = await get_user_or_404(db, user_id)
    if user.client is None:
        raise not_found("Client profile")

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user.client, field, value)
    await db.commit()

    return UserResponse.model_validate(await get_user_or_404(db, user_id, refresh=True))


@router.put("/livreur/{user_id}", response_model=UserResponse)
async def update_livreur(
    user_id: str,
    data: LivreurUpdate,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    ensure_self_or_admin(current, user_id)
    user = await get_user_or_404(db, user_id)
    if user.livreur is None:
        raise not_found("Livreur profile")

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user.livreur, field, value)
    await db.commit()

    return UserResponse.model_validate(await get_user_or_404(db, user_id, refresh=True))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    ensure_self_or_admin(current, user_id)
    return UserResponse.model_validate(await get_user_or_404(db, user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    current: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    ensure_self_or_admin(current, user_id)
    user = await get_user_or_404(db, user_id)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")
    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()

    return UserResponse.model_validate(await get_user_or_404(db, user_id, refresh=True))
