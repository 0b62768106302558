"""
Outbound notifications (SMS and email) plus the in-app inbox helpers.

get_notification_service() picks the logging mock in development and
Twilio/SendGrid elsewhere.
"""

from functools import lru_cache

from marketplace.core.config import get_settings
from marketplace.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
    SMS_TEMPLATES,
    render_sms,
    order_number,
)
from marketplace.services.notifications.mock import MockNotificationService
from marketplace.services.notifications.real import RealNotificationService


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    settings = get_settings()
    if settings.use_real_services:
        return RealNotificationService()
    return MockNotificationService(
        failure_rate=settings.mock_failure_rate,
        min_latency=settings.mock_min_latency,
        max_latency=settings.mock_max_latency,
    )


__all__ = [
    "get_notification_service",
    "BaseNotificationService",
    "NotificationResult",
    "SMS_TEMPLATES",
    "render_sms",
    "order_number",
]
