"""
Payment Provider Interface

The payments router charges, refunds and verifies webhooks through this
contract only; ENV_MODE decides whether the mock or Stripe sits behind it.
Amounts are euros, Stripe conversion to cents happens inside the provider.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from typing import Optional


@dataclass
class PaymentResult:
    """
    A charge or an intent as reported by the provider.

    payment_intent_id becomes Payment.transaction_id; client_secret is only
    set for intents the client confirms on its side.
    """
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "eur"
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: float = 0.0
    metadata: dict = field(default_factory=dict)

    @classmethod
    def declined(cls, code: str, message: str, **extra) -> "PaymentResult":
        return cls(success=False, error_code=code, error_message=message, **extra)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    amount: Optional[float] = None
    status: str = "pending"
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class BasePaymentService(ABC):
    """
    Card payment provider.

    Declines and bad references come back as results with success=False;
    only programming or configuration errors raise.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @abstractmethod
    async def charge(
        self,
        amount: float,
        currency: str = "eur",
        customer_email: Optional[str] = None,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """Charge and confirm in one call (server-side card payment)."""

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: float,
        currency: str = "eur",
        metadata: Optional[dict] = None,
    ) -> PaymentResult:
        """Open an intent; the client confirms it and the webhook settles the order."""

    @abstractmethod
    async def refund(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """Full refund when amount is None."""

    @abstractmethod
    async def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Optional[dict]:
        """Parsed event, or None when the payload or its signature is rejected."""

    @abstractmethod
    async def health_check(self) -> bool:
        ...
