"""
Card payments.

get_payment_service() returns the MockPaymentService in development and the
StripePaymentService in staging/production (test or live keys, depending on
STRIPE_SECRET_KEY). The instance is built once per process.
"""

import logging
from functools import lru_cache

from marketplace.core.config import get_settings
from marketplace.services.payment.base import BasePaymentService, PaymentResult, RefundResult
from marketplace.services.payment.mock import MockPaymentService
from marketplace.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    settings = get_settings()
    if settings.use_real_services:
        logger.info(f"Payments go through Stripe ({settings.env_mode.value})")
        return StripePaymentService()

    return MockPaymentService(
        failure_rate=settings.mock_failure_rate,
        min_latency=settings.mock_min_latency,
        max_latency=settings.mock_max_latency,
    )


__all__ = [
    "get_payment_service",
    "BasePaymentService",
    "PaymentResult",
    "RefundResult",
    "MockPaymentService",
    "StripePaymentService",
]
