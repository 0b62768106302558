"""
Development SMS/email sink: every message is logged and appended to
`outbox`, nothing is sent.
"""

import asyncio
import random
import uuid
import logging
from typing import Optional

from marketplace.services.notifications.base import BaseNotificationService, NotificationResult

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):

    def __init__(self, failure_rate: float = 0.05, min_latency: float = 0.1, max_latency: float = 0.3):
        self.failure_rate = failure_rate
        self.latency_range = (min_latency, max(min_latency, max_latency))
        self.outbox: list[tuple[str, str, str]] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _deliver(self, channel: str, recipient: str, summary: str) -> NotificationResult:
        delay = random.uniform(*self.latency_range)
        if delay:
            await asyncio.sleep(delay)

        if random.random() < self.failure_rate:
            logger.warning(f"[mock {channel}] dropped message to {recipient}")
            return NotificationResult(success=False, error_message=f"Simulated {channel} failure", provider="mock")

        self.outbox.append((channel, recipient, summary))
        logger.info(f"[mock {channel}] {recipient} <- {summary[:60]}")
        return NotificationResult(success=True, message_id=f"{channel}_mock_{uuid.uuid4().hex[:12]}", provider="mock")

    async def send_sms(self, to_phone: str, message: str) -> NotificationResult:
        return await self._deliver("sms", to_phone, message)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        return await self._deliver("email", to_email, subject)

    async def health_check(self) -> bool:
        return True
