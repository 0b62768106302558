"""
Notification Provider Interface

SMS and email delivery for the marketplace. In-app notifications are stored
in the database by marketplace.services.notifications.inbox; this interface
only covers the outbound channels.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Optional


@dataclass
class NotificationResult:
    """Result from sending an SMS or an email."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"
    body: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# Customer-facing SMS texts, keyed by template name
SMS_TEMPLATES = {
    "order_confirmed": "Votre commande #{order_number} a été confirmée. Nous préparons vos délices !",
    "order_ready": (
        "Votre commande #{order_number} est prête chez {restaurant_name}. "
        "Un livreur va bientôt la récupérer !"
    ),
    "order_picked_up": "{driver_name} a récupéré votre commande #{order_number} et est en route !",
    "order_delivered": "Votre commande #{order_number} a été livrée. Bon appétit !",
    "order_cancelled": (
        "Votre commande #{order_number} a été annulée. "
        "Nous vous remboursons sous 3-5 jours ouvrés."
    ),
}


def render_sms(template: str, **data) -> str:
    """
    Render a named SMS template.

    Raises:
        KeyError: Unknown template name
    """
    return SMS_TEMPLATES[template].format(**data)


def order_number(order_id: str) -> str:
    """Short order reference shown to customers."""
    return order_id[:8].upper()


class BaseNotificationService(ABC):
    """Abstract base class for outbound notification providers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def send_sms(self, to_phone: str, message: str) -> NotificationResult:
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        pass

    async def send_template_sms(self, to_phone: str, template: str, **data) -> NotificationResult:
        """Render a template from SMS_TEMPLATES and send it."""
        message = render_sms(template, **data)
        result = await self.send_sms(to_phone, message)
        result.body = message
        return result

    @abstractmethod
    async def health_check(self) -> bool:
        pass
