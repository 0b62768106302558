"""
Stripe Payment Provider (staging / production).

Needs STRIPE_SECRET_KEY; STRIPE_WEBHOOK_SECRET is needed to accept webhooks.

The usual card flow is intent-based: the client confirms the intent with
Stripe.js, then posts the intent id as transaction_id to /api/payments/process
(or lets the payment_intent.succeeded webhook settle the order). charge()
only succeeds for cards Stripe can confirm without a redirect.
"""

import asyncio
import logging
import time
from typing import Optional

import stripe

from marketplace.core.config import get_settings
from marketplace.services.payment.base import BasePaymentService, PaymentResult, RefundResult

logger = logging.getLogger(__name__)

# Money captured, or about to be
SETTLED_STATUSES = ("succeeded", "processing")

# Stripe failures that are not card declines
_API_FAILURES = (
    (stripe.AuthenticationError, "authentication_error", "Payment service configuration error"),
    (stripe.APIConnectionError, "connection_error", "Payment service temporarily unavailable"),
)


def cents(amount: float) -> int:
    return int(round(amount * 100))


class StripePaymentService(BasePaymentService):
    """Stripe's SDK blocks, so each request is pushed to a worker thread."""

    def __init__(self):
        settings = get_settings()
        if not settings.stripe_secret_key:
            raise ValueError("STRIPE_SECRET_KEY must be set when ENV_MODE is not development")

        stripe.api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._currency = settings.stripe_currency

    @property
    def provider_name(self) -> str:
        return "stripe"

    async def _create_intent(self, amount: float, currency: str, **params) -> PaymentResult:
        if amount <= 0:
            return PaymentResult.declined("invalid_amount", "Amount must be greater than 0")

        started = time.perf_counter()

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=cents(amount),
                currency=currency or self._currency,
                **params,
            )
        except stripe.CardError as e:
            logger.warning(f"Stripe declined {amount:.2f}: {e.code}")
            return PaymentResult.declined(
                e.code, e.user_message, amount=amount, currency=currency, response_time_ms=elapsed()
            )
        except stripe.StripeError as e:
            for error_type, code, message in _API_FAILURES:
                if isinstance(e, error_type):
                    logger.critical(f"Stripe unusable ({code}): {e}")
                    return PaymentResult.declined(code, message, response_time_ms=elapsed())
            logger.error(f"Stripe PaymentIntent failed: {e}")
            return PaymentResult.declined("stripe_error", str(e), response_time_ms=elapsed())

        logger.info(f"Stripe PaymentIntent {intent.id} is {intent.status}")
        return PaymentResult(
            success=True,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount / 100,
            currency=intent.currency,
            response_time_ms=elapsed(),
            metadata={"status": intent.status},
        )

    async def charge(
        self,
        amount: float,
        currency: str = "eur",
        customer_email: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        result = await self._create_intent(
            amount,
            currency,
            confirm=True,
            description=description,
            receipt_email=customer_email,
            metadata=metadata or {},
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
        )
        if result.success and result.metadata["status"] not in SETTLED_STATUSES:
            result.success = False
            result.error_code = result.metadata["status"]
            result.error_message = "Card payment requires client confirmation"
        result.client_secret = None
        return result

    async def create_payment_intent(
        self,
        amount: float,
        currency: str = "eur",
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        return await self._create_intent(
            amount,
            currency,
            metadata=metadata or {},
            automatic_payment_methods={"enabled": True},
        )

    async def refund(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """reason is one of duplicate, fraudulent, requested_by_customer."""
        params = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = cents(amount)
        if reason:
            params["reason"] = reason

        try:
            refund = await asyncio.to_thread(stripe.Refund.create, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe refund of {payment_intent_id} failed: {e}")
            return RefundResult(success=False, error_message=str(e))

        return RefundResult(success=True, refund_id=refund.id, amount=refund.amount / 100, status=refund.status)

    async def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[dict]:
        if not (self._webhook_secret and signature):
            logger.error("Stripe webhook rejected: missing secret or signature")
            return None

        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning(f"Stripe webhook rejected: {e}")
            return None

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(stripe.Account.retrieve)
        except stripe.StripeError as e:
            logger.error(f"Stripe unreachable: {e}")
            return False
        return True
