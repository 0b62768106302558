"""
Notification Endpoints

In-app inbox of the calling user; admins may push a notification to
anyone, optionally mirrored by email.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import forbidden, get_user_or_404, not_found
from marketplace.core.security import get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import Notification, User, UserRole
from marketplace.schemas import NotificationResponse, NotificationSend
from marketplace.services.notifications.inbox import notify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.post("/send", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def send_notification(
    data: NotificationSend,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    user = await get_user_or_404(db, data.user_id)
    notification = await notify(db, user, data.title, data.message, send_email=data.send_email)
    await db.commit()
    return NotificationResponse.model_validate(notification)


@router.get("/me", response_model=List[NotificationResponse])
async def my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[NotificationResponse]:
    query = (
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.sent_at.desc())
        .limit(limit)
    )
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(query)
    return [NotificationResponse.model_validate(n) for n in result.scalars().all()]


@router.get("/me/unread-count")
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user.id,
            Notification.is_read.is_(False),
        )
    )
    return {"unread_count": result.scalar() or 0}


@router.put("/me/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return {"updated": result.rowcount or 0}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    result = await db.execute(select(Notification).where(Notification.id == notification_id))
    notification = result.scalar_one_or_none()
    if not notification:
        raise not_found("Notification")
    if notification.user_id != user.id and user.role != UserRole.ADMIN:
        raise forbidden()

    notification.is_read = True
    await db.commit()
    return NotificationResponse.model_validate(notification)
