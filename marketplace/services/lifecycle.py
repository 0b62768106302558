"""
Order Lifecycle

Status changes that ripple across concerns:

    payment COMPLETED   -> order CONFIRMED, client + restaurateur notified
    order READY         -> client notified
    delivery accepted   -> order IN_DELIVERY
    delivery DELIVERED  -> order DELIVERED, loyalty points credited
    order CANCELLED     -> delivery CANCELLED, client notified
    delivery CANCELLED  -> back to the couriers pool if not picked up yet,
                           otherwise the order is cancelled

Functions here mutate and flush; the calling router commits and then
publishes the Socket.IO events with `publish()`.
"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import (
    Delivery,
    DeliveryStatus,
    Livreur,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    utcnow,
)
from marketplace.services import loyalty
from marketplace.services.notifications import order_number
from marketplace.services.notifications.inbox import notify, send_sms
from marketplace.services.realtime import emit_delivery_update, emit_order_update

logger = logging.getLogger(__name__)

FINAL_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)
FINAL_DELIVERY_STATUSES = (DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED)
DELIVERY_DRIVEN_STATUSES = (OrderStatus.IN_DELIVERY, OrderStatus.DELIVERED)


class LifecycleError(ValueError):
    """Transition not allowed from the current state."""


class DeliveryTaken(LifecycleError):
    """Another courier accepted the delivery first."""


def _sms_data(order: Order, **extra) -> dict:
    return {
        "order_number": order_number(order.id),
        "restaurant_name": order.restaurant.name if order.restaurant else "",
        **extra,
    }


# =============================================================================
# PAYMENT -> ORDER
# =============================================================================

async def complete_payment(
    db: AsyncSession,
    payment: Payment,
    order: Order,
    transaction_id: Optional[str],
) -> None:
    payment.status = PaymentStatus.COMPLETED
    payment.transaction_id = transaction_id
    payment.error_message = None

    if order.status == OrderStatus.PENDING:
        order.status = OrderStatus.CONFIRMED

    short = order_number(order.id)
    client_user = order.client.user
    await notify(
        db,
        client_user,
        "Paiement confirmé",
        f"Commande {short} payée et confirmée.",
        send_email=True,
    )
    await send_sms(client_user.phone, "order_confirmed", **_sms_data(order))

    owner = order.restaurant.restaurateur.user
    await notify(
        db,
        owner,
        "Nouvelle commande payée",
        f"Commande {short} est payée, préparez-la.",
        send_email=True,
    )
    await db.flush()
    logger.info(f"Payment completed for order {order.id}")


def fail_payment(payment: Payment, message: Optional[str]) -> None:
    payment.status = PaymentStatus.FAILED
    payment.error_message = (message or "Payment declined")[:255]


# =============================================================================
# ORDER STATUS
# =============================================================================

async def change_order_status(db: AsyncSession, order: Order, status: OrderStatus) -> None:
    """
    Kitchen-side status change (restaurateur or admin).

    IN_DELIVERY and DELIVERED follow the delivery; CONFIRMED, PREPARING and
    READY need a completed payment.
    """
    if status == order.status:
        return
    if order.status in FINAL_ORDER_STATUSES:
        raise LifecycleError(f"Order is already {order.status.value}")

    if status == OrderStatus.CANCELLED:
        await cancel_order(db, order)
        return

    if status in DELIVERY_DRIVEN_STATUSES:
        raise LifecycleError(f"{status.value} is set by the delivery, not the order")
    if order.status == OrderStatus.IN_DELIVERY:
        raise LifecycleError("Order is already with a courier")
    if status == OrderStatus.PENDING:
        raise LifecycleError("A paid order cannot go back to PENDING")
    if order.payment is None or order.payment.status != PaymentStatus.COMPLETED:
        raise LifecycleError("Order is not paid yet")

    order.status = status
    await db.flush()

    if status == OrderStatus.READY:
        await notify(
            db,
            order.client.user,
            "Commande prête",
            f"Votre commande {order_number(order.id)} est prête, un livreur va la récupérer.",
        )
        await send_sms(order.client.user.phone, "order_ready", **_sms_data(order))


async def cancel_order(db: AsyncSession, order: Order) -> None:
    if order.status == OrderStatus.DELIVERED:
        raise LifecycleError("Delivered orders cannot be cancelled")
    if order.status == OrderStatus.CANCELLED:
        raise LifecycleError("Order is already CANCELLED")

    order.status = OrderStatus.CANCELLED
    if order.delivery is not None and order.delivery.status not in FINAL_DELIVERY_STATUSES:
        order.delivery.status = DeliveryStatus.CANCELLED
    await db.flush()

    await notify(
        db,
        order.client.user,
        "Commande annulée",
        f"Votre commande {order_number(order.id)} a été annulée.",
        send_email=True,
    )
    await send_sms(order.client.user.phone, "order_cancelled", **_sms_data(order))
    logger.info(f"Order {order.id} cancelled")


# =============================================================================
# DELIVERY -> ORDER
# =============================================================================

async def accept_delivery(db: AsyncSession, delivery: Delivery, livreur: Livreur) -> None:
    """
    Assign a waiting delivery to a courier.

    The assignment is a single conditional UPDATE, so two couriers racing
    for the same delivery cannot both win.

    Raises:
        DeliveryTaken: the delivery is no longer waiting
    """
    if delivery.order.status in FINAL_ORDER_STATUSES:
        raise LifecycleError(f"Order is already {delivery.order.status.value}")

    now = utcnow()
    result = await db.execute(
        update(Delivery)
        .where(
            Delivery.id == delivery.id,
            Delivery.status == DeliveryStatus.WAITING,
            Delivery.livreur_id.is_(None),
        )
        .values(
            livreur_id=livreur.id,
            status=DeliveryStatus.ACCEPTED,
            accepted_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise DeliveryTaken("Delivery already taken")

    delivery.order.status = OrderStatus.IN_DELIVERY
    await db.flush()
    logger.info(f"Delivery {delivery.id} accepted by livreur {livreur.id}")


async def change_delivery_status(db: AsyncSession, delivery: Delivery, status: DeliveryStatus) -> None:
    if delivery.status in FINAL_DELIVERY_STATUSES and status != delivery.status:
        raise LifecycleError(f"Delivery is already {delivery.status.value}")
    if status in (DeliveryStatus.ACCEPTED, DeliveryStatus.WAITING) and status != delivery.status:
        raise LifecycleError("Use the accept endpoint to take a delivery")

    order = delivery.order

    if status == DeliveryStatus.CANCELLED:
        if delivery.status == DeliveryStatus.ACCEPTED:
            await release_delivery(db, delivery)
        else:
            # Food already left the restaurant. Loaded from the delivery side,
            # the order does not carry its delivery yet.
            await db.refresh(order, attribute_names=["delivery"])
            await cancel_order(db, order)
        return

    delivery.status = status

    if status == DeliveryStatus.PICKED_UP:
        driver = delivery.livreur.user.first_name if delivery.livreur else "Votre livreur"
        await send_sms(
            order.client.user.phone,
            "order_picked_up",
            **_sms_data(order, driver_name=driver),
        )

    elif status == DeliveryStatus.DELIVERED:
        now = utcnow()
        delivery.completed_at = now
        if delivery.accepted_at:
            delivery.actual_time = int((now - delivery.accepted_at).total_seconds() // 60)
        order.status = OrderStatus.DELIVERED

        earned = await loyalty.add_order_points(db, order.client.user_id, order.total_amount)
        await notify(
            db,
            order.client.user,
            "Commande livrée",
            f"Votre commande {order_number(order.id)} a été livrée. "
            f"+{earned['points_earned']} points fidélité.",
        )
        await send_sms(order.client.user.phone, "order_delivered", **_sms_data(order))

    await db.flush()


async def release_delivery(db: AsyncSession, delivery: Delivery) -> None:
    """Hand an accepted delivery back to the couriers pool."""
    courier = delivery.livreur_id
    delivery.livreur_id = None
    delivery.status = DeliveryStatus.WAITING
    delivery.accepted_at = None
    if delivery.order.status == OrderStatus.IN_DELIVERY:
        delivery.order.status = OrderStatus.READY
    await db.flush()

    await notify(
        db,
        delivery.order.client.user,
        "Livreur remplacé",
        f"Votre commande {order_number(delivery.order_id)} attend un nouveau livreur.",
    )
    logger.info(f"Delivery {delivery.id} released by livreur {courier}")


# =============================================================================
# REAL-TIME
# =============================================================================

async def publish(order: Order, delivery: bool = True) -> None:
    """Emit order:update and, when asked, delivery:update for a committed order."""
    await emit_order_update(order)
    if delivery and order.delivery is not None:
        await emit_delivery_update(order.delivery)
