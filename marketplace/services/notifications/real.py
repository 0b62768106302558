"""
Outbound SMS through Twilio and email through SendGrid.

Either channel may be left unconfigured; its sends then fail with a result
instead of raising, so an order never stalls on a missing SMS key.
"""

import asyncio
import logging
from typing import Optional

from python_http_client.exceptions import HTTPError as SendGridHTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioException

from marketplace.core.config import get_settings
from marketplace.services.notifications.base import BaseNotificationService, NotificationResult

logger = logging.getLogger(__name__)

SENDGRID_ACCEPTED = (200, 201, 202)


class RealNotificationService(BaseNotificationService):

    def __init__(self):
        settings = get_settings()

        self._sms = None
        if settings.twilio_account_sid and settings.twilio_auth_token:
            self._sms = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
        self._sms_sender = settings.twilio_phone_number

        self._mail = SendGridAPIClient(settings.sendgrid_api_key) if settings.sendgrid_api_key else None
        self._mail_sender = settings.sendgrid_from_email

        for channel, client in (("SMS (Twilio)", self._sms), ("email (SendGrid)", self._mail)):
            if client is None:
                logger.warning(f"{channel} is not configured, those notifications will be skipped")

    @property
    def provider_name(self) -> str:
        return "twilio+sendgrid"

    async def send_sms(self, to_phone: str, message: str) -> NotificationResult:
        if self._sms is None:
            return NotificationResult(success=False, error_message="Twilio not configured", provider="twilio")

        try:
            sent = await asyncio.to_thread(
                self._sms.messages.create,
                to=to_phone,
                from_=self._sms_sender,
                body=message,
            )
        except TwilioException as e:
            logger.error(f"Twilio refused SMS to {to_phone}: {e}")
            return NotificationResult(success=False, error_message=str(e), provider="twilio")

        return NotificationResult(success=True, message_id=sent.sid, provider="twilio")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        if self._mail is None:
            return NotificationResult(success=False, error_message="SendGrid not configured", provider="sendgrid")

        mail = Mail(
            from_email=self._mail_sender,
            to_emails=to_email,
            subject=subject,
            html_content=body_html,
            plain_text_content=body_text,
        )
        try:
            response = await asyncio.to_thread(self._mail.send, mail)
        except SendGridHTTPError as e:
            logger.error(f"SendGrid refused '{subject}' to {to_email}: {e}")
            return NotificationResult(success=False, error_message=str(e), provider="sendgrid")

        return NotificationResult(
            success=response.status_code in SENDGRID_ACCEPTED,
            message_id=response.headers.get("X-Message-Id"),
            provider="sendgrid",
        )

    async def health_check(self) -> bool:
        # Neither SDK opens a connection before the first send
        return self._sms is not None or self._mail is not None
