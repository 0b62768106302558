"""
In-app notifications.

Writes Notification rows, pushes them to the user's Socket.IO room and,
on request, mirrors them by email through the notification provider.
Outbound channel failures are logged and never raised to the caller.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import Notification, User
from marketplace.services.notifications import get_notification_service
from marketplace.services.realtime import emit_notification

logger = logging.getLogger(__name__)


async def notify(
    db: AsyncSession,
    user: User,
    title: str,
    message: str,
    send_email: bool = False,
) -> Notification:
    """
    Store a notification for `user` (flushed, not committed) and push it.

    The caller owns the transaction; the push happens right away, so a
    client may briefly see a notification whose transaction later rolls
    back. Clients treat pushes as hints and refetch.
    """
    notification = Notification(user_id=user.id, title=title, message=message)

    if send_email and user.email:
        result = await get_notification_service().send_email(
            to_email=user.email,
            subject=title,
            body_html=f"<h2>{title}</h2><p>{message}</p>",
            body_text=message,
        )
        notification.email_sent = result.success
        if not result.success:
            logger.warning(f"Email to {user.email} failed: {result.error_message}")

    db.add(notification)
    await db.flush()
    await emit_notification(notification)
    return notification


async def send_sms(phone: Optional[str], template: str, **data) -> bool:
    """Send a templated SMS when a phone number is known."""
    if not phone:
        return False
    result = await get_notification_service().send_template_sms(phone, template, **data)
    if not result.success:
        logger.warning(f"SMS '{template}' to {phone} failed: {result.error_message}")
    return result.success
