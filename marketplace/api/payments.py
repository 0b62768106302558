"""
Payment Endpoints

    POST /api/payments/process          settle an order (card or cash)
    POST /api/payments/create-intent    card intent confirmed client-side
    GET  /api/payments/order/{order_id}
    POST /api/payments/refund/{order_id}
    POST /api/payments/webhook          provider events

A completed payment confirms the order and makes its delivery visible to
couriers.
"""

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import (
    ensure_order_access,
    ensure_restaurant_owner,
    get_order_or_404,
    not_found,
)
from marketplace.core.config import get_settings
from marketplace.core.security import get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import (
    Order,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    User,
    UserRole,
)
from marketplace.schemas import (
    ErrorResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentProcessRequest,
    PaymentResponse,
)
from marketplace.services.lifecycle import complete_payment, fail_payment, publish
from marketplace.services.notifications import order_number
from marketplace.services.notifications.inbox import notify
from marketplace.services.payment import get_payment_service

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def _payment_of(order: Order) -> Payment:
    if order.payment is None:
        raise not_found("Payment")
    return order.payment


async def _reload_payment(db: AsyncSession, order_id: str) -> Payment:
    order = await get_order_or_404(db, order_id, refresh=True)
    return _payment_of(order)


@router.post(
    "/process",
    response_model=PaymentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def process_payment(
    data: PaymentProcessRequest,
    user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    """
    Settle the payment of an order.

    CASH is recorded as is. CARD with a transaction id is trusted as
    already confirmed by the client; CARD without one is charged here.
    """
    order = await get_order_or_404(db, data.order_id)
    ensure_order_access(user, order)
    payment = _payment_of(order)

    if payment.status == PaymentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Payment already completed")
    if order.status == OrderStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Order is cancelled")

    method = PaymentMethod(data.payment_method)
    payment.payment_method = method
    transaction_id = data.transaction_id

    if method == PaymentMethod.CASH:
        transaction_id = transaction_id or f"CASH-{int(time.time() * 1000)}"

    elif not transaction_id:
        result = await get_payment_service().charge(
            amount=payment.amount,
            currency=settings.stripe_currency,
            customer_email=order.client.user.email,
            description=f"Commande {order_number(order.id)}",
            metadata={"order_id": order.id, "client_id": order.client_id},
        )
        if not result.success:
            fail_payment(payment, result.error_message)
            await db.commit()
            logger.warning(f"Payment declined for order {order.id}: {result.error_message}")
            raise HTTPException(status_code=400, detail=result.error_message or "Payment declined")
        transaction_id = result.payment_intent_id

    await complete_payment(db, payment, order, transaction_id)
    await db.commit()

    order = await get_order_or_404(db, data.order_id, refresh=True)
    await publish(order)

    return PaymentResponse.model_validate(order.payment)


@router.post("/create-intent", response_model=PaymentIntentResponse)
async def create_intent(
    data: PaymentIntentRequest,
    user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentResponse:
    order = await get_order_or_404(db, data.order_id)
    ensure_order_access(user, order)
    payment = _payment_of(order)
    if payment.status == PaymentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Payment already completed")

    result = await get_payment_service().create_payment_intent(
        amount=payment.amount,
        currency=settings.stripe_currency,
        metadata={"order_id": order.id},
    )
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error_message or "Payment intent failed")

    # The webhook finds the payment through this id
    payment.transaction_id = result.payment_intent_id
    await db.commit()

    return PaymentIntentResponse(
        success=True,
        payment_intent_id=result.payment_intent_id,
        client_secret=result.client_secret,
        amount=payment.amount,
        currency=result.currency,
    )


@router.get("/order/{order_id}", response_model=PaymentResponse, responses={404: {"model": ErrorResponse}})
async def get_payment(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    order = await get_order_or_404(db, order_id)
    ensure_order_access(user, order)
    return PaymentResponse.model_validate(_payment_of(order))


@router.post("/refund/{order_id}", response_model=PaymentResponse)
async def refund_payment(
    order_id: str,
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.RESTAURATEUR)),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    order = await get_order_or_404(db, order_id)
    ensure_restaurant_owner(user, order.restaurant)
    payment = _payment_of(order)

    if payment.status != PaymentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Only completed payments can be refunded")

    if payment.transaction_id and payment.transaction_id.startswith("pi_"):
        result = await get_payment_service().refund(payment.transaction_id, reason="requested_by_customer")
        if not result.success:
            raise HTTPException(status_code=400, detail=result.error_message or "Refund failed")
        logger.info(f"Refund {result.refund_id} issued for order {order_id}")

    payment.status = PaymentStatus.REFUNDED
    await notify(
        db,
        order.client.user,
        "Remboursement effectué",
        f"Le paiement de la commande {order_number(order.id)} a été remboursé.",
        send_email=True,
    )
    await db.commit()

    return PaymentResponse.model_validate(await _reload_payment(db, order_id))


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Apply payment_intent.succeeded / payment_intent.payment_failed events."""
    payload = await request.body()
    event = await get_payment_service().verify_webhook(payload, stripe_signature)
    if event is None:
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    intent_id = intent.get("id")
    logger.info(f"Payment webhook: {event_type} ({intent_id})")

    if not intent_id or event_type not in ("payment_intent.succeeded", "payment_intent.payment_failed"):
        return {"received": True, "handled": False}

    result = await db.execute(select(Payment.order_id).where(Payment.transaction_id == intent_id))
    order_id = result.scalar_one_or_none()
    if order_id is None:
        logger.warning(f"Webhook for unknown payment intent {intent_id}")
        return {"received": True, "handled": False}

    order = await get_order_or_404(db, order_id)
    payment = _payment_of(order)

    if event_type == "payment_intent.succeeded":
        if payment.status == PaymentStatus.COMPLETED:
            return {"received": True, "handled": False}
        await complete_payment(db, payment, order, intent_id)
        await db.commit()
        await publish(await get_order_or_404(db, order_id, refresh=True))
    else:
        error = intent.get("last_payment_error") or {}
        fail_payment(payment, error.get("message"))
        await db.commit()

    return {"received": True, "handled": True}
