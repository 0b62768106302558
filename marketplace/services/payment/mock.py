"""
Mock Payment Provider

Card payments without Stripe: ids look like Stripe's (pi_mock_..., re_mock_...),
a configurable share of charges is declined with a Stripe decline code, and
every call waits a random delay. Tests run it with MOCK_FAILURE_RATE=0 and
no latency.
"""

import asyncio
import json
import random
import uuid
import logging
from typing import Optional

from marketplace.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):

    DECLINE_REASONS = {
        "card_declined": "Votre carte a été refusée.",
        "insufficient_funds": "Provision insuffisante sur la carte.",
        "expired_card": "Votre carte a expiré.",
        "incorrect_cvc": "Le cryptogramme de la carte est incorrect.",
    }

    def __init__(self, failure_rate: float = 0.05, min_latency: float = 0.1, max_latency: float = 0.5):
        self.failure_rate = failure_rate
        self.latency_range = (min_latency, max(min_latency, max_latency))
        logger.info(f"MockPaymentService ready (declines {failure_rate:.0%}, latency {self.latency_range}s)")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _round_trip(self) -> float:
        delay = random.uniform(*self.latency_range)
        if delay:
            await asyncio.sleep(delay)
        return delay * 1000

    @staticmethod
    def _reference(kind: str) -> str:
        return f"{kind}_mock_{uuid.uuid4().hex[:24]}"

    async def _open_intent(self, amount: float, currency: str, metadata: dict, decline: bool) -> PaymentResult:
        elapsed = await self._round_trip()

        if amount <= 0:
            return PaymentResult.declined("invalid_amount", "Amount must be greater than 0", response_time_ms=elapsed)

        if decline and random.random() < self.failure_rate:
            code = random.choice(list(self.DECLINE_REASONS))
            logger.info(f"Mock charge of {amount:.2f} declined ({code})")
            return PaymentResult.declined(
                code,
                self.DECLINE_REASONS[code],
                amount=amount,
                currency=currency,
                response_time_ms=elapsed,
            )

        intent_id = self._reference("pi")
        return PaymentResult(
            success=True,
            payment_intent_id=intent_id,
            client_secret=f"{intent_id}_secret_mock",
            amount=amount,
            currency=currency,
            response_time_ms=elapsed,
            metadata={**metadata, "mock": True},
        )

    async def charge(
        self,
        amount: float,
        currency: str = "eur",
        customer_email: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        details = {"receipt_email": customer_email, "description": description, **(metadata or {})}
        result = await self._open_intent(amount, currency, details, decline=True)
        if result.success:
            # A charged intent has nothing left for the client to confirm
            result.client_secret = None
            logger.info(f"Mock charge {result.payment_intent_id}: {amount:.2f} {currency.upper()}")
        return result

    async def create_payment_intent(
        self,
        amount: float,
        currency: str = "eur",
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """The client secret is not usable with Stripe.js."""
        return await self._open_intent(amount, currency, metadata or {}, decline=False)

    async def refund(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        await self._round_trip()
        if not payment_intent_id.startswith("pi_"):
            return RefundResult(success=False, error_message=f"{payment_intent_id} is not a card payment")

        refund_id = self._reference("re")
        logger.info(f"Mock refund {refund_id} for {payment_intent_id} ({reason or 'no reason'})")
        return RefundResult(success=True, refund_id=refund_id, amount=amount, status="succeeded")

    async def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[dict]:
        # Unsigned in development
        try:
            event = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Mock webhook body is not JSON")
            return None
        return event if isinstance(event, dict) else None

    async def health_check(self) -> bool:
        return True
