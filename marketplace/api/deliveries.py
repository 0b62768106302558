"""
Delivery Endpoints

Couriers browse paid orders waiting for pickup, accept one, and move it
through PICKED_UP / ON_ROUTE / DELIVERED. Earnings are computed from the
delivered ones. Couriers can also report a problem met on the road, which
opens a support ticket.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import (
    ensure_order_access,
    forbidden,
    get_delivery_or_404,
    get_order_or_404,
    not_found,
    require_livreur,
)
from marketplace.core.security import get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import (
    Delivery,
    DeliveryStatus,
    Livreur,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    User,
    UserRole,
)
from marketplace.schemas import (
    DeliveryAccept,
    DeliveryResponse,
    DeliveryStatusUpdate,
    ErrorResponse,
    IssueReportRequest,
    SupportTicketResponse,
)
from marketplace.services import support
from marketplace.services.earnings import livreur_metrics
from marketplace.services.lifecycle import (
    DeliveryTaken,
    LifecycleError,
    accept_delivery as accept_delivery_flow,
    change_delivery_status,
    publish,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deliveries", tags=["Deliveries"])

courier_roles = require_roles(UserRole.LIVREUR, UserRole.ADMIN)

PENDING_APPROVAL = "Compte livreur en attente de validation admin"


def _ensure_approved(livreur: Livreur) -> None:
    if not livreur.is_approved:
        raise HTTPException(status_code=403, detail=PENDING_APPROVAL)


def _ensure_assigned(user: User, delivery: Delivery) -> None:
    if user.role == UserRole.ADMIN:
        return
    if user.livreur is None or delivery.livreur_id != user.livreur.id:
        raise forbidden()


def _deliveries_query(status_filter: Optional[DeliveryStatus] = None):
    query = select(Delivery).order_by(Delivery.created_at.desc())
    if status_filter:
        query = query.where(Delivery.status == status_filter)
    return query


@router.get("/available", response_model=List[DeliveryResponse])
async def available_deliveries(
    user: User = Depends(courier_roles),
    db: AsyncSession = Depends(get_db),
) -> List[DeliveryResponse]:
    """Paid orders waiting for a courier, oldest first."""
    result = await db.execute(
        select(Delivery)
        .join(Order, Order.id == Delivery.order_id)
        .join(Payment, Payment.order_id == Delivery.order_id)
        .where(
            Delivery.status == DeliveryStatus.WAITING,
            Delivery.livreur_id.is_(None),
            Order.status != OrderStatus.CANCELLED,
            Payment.status == PaymentStatus.COMPLETED,
        )
        .order_by(Delivery.created_at.asc())
    )
    return [DeliveryResponse.model_validate(d) for d in result.scalars().all()]


@router.get("/livreur/me", response_model=List[DeliveryResponse])
async def my_deliveries(
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status"),
    user: User = Depends(require_roles(UserRole.LIVREUR)),
    db: AsyncSession = Depends(get_db),
) -> List[DeliveryResponse]:
    livreur = require_livreur(user)
    result = await db.execute(_deliveries_query(status_filter).where(Delivery.livreur_id == livreur.id))
    return [DeliveryResponse.model_validate(d) for d in result.scalars().all()]


@router.get("/livreur/me/metrics")
async def my_metrics(
    user: User = Depends(require_roles(UserRole.LIVREUR)),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Earnings, activity stats and payout history of the calling courier."""
    return await livreur_metrics(db, require_livreur(user))


@router.get("/livreur/{livreur_id}", response_model=List[DeliveryResponse])
async def deliveries_by_livreur(
    livreur_id: str,
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status"),
    user: User = Depends(courier_roles),
    db: AsyncSession = Depends(get_db),
) -> List[DeliveryResponse]:
    if user.role != UserRole.ADMIN and (user.livreur is None or user.livreur.id != livreur_id):
        raise forbidden()
    result = await db.execute(_deliveries_query(status_filter).where(Delivery.livreur_id == livreur_id))
    return [DeliveryResponse.model_validate(d) for d in result.scalars().all()]


@router.post("/support/report", response_model=SupportTicketResponse, status_code=status.HTTP_201_CREATED)
async def report_issue(
    data: IssueReportRequest,
    user: User = Depends(require_roles(UserRole.LIVREUR)),
    db: AsyncSession = Depends(get_db),
) -> SupportTicketResponse:
    """Open a support ticket about a problem met on the road."""
    require_livreur(user)
    delivery = None
    if data.delivery_id:
        delivery = await get_delivery_or_404(db, data.delivery_id)
        _ensure_assigned(user, delivery)

    ticket = await support.report_issue(db, user, data.type, data.message, delivery)
    await db.commit()
    return SupportTicketResponse.model_validate(ticket)


@router.get("/{delivery_id}", response_model=DeliveryResponse, responses={404: {"model": ErrorResponse}})
async def get_delivery(
    delivery_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DeliveryResponse:
    delivery = await get_delivery_or_404(db, delivery_id)
    if user.role == UserRole.LIVREUR:
        waiting = delivery.status == DeliveryStatus.WAITING and delivery.livreur_id is None
        if not waiting:
            _ensure_assigned(user, delivery)
    else:
        ensure_order_access(user, delivery.order)
    return DeliveryResponse.model_validate(delivery)


@router.put(
    "/{delivery_id}/accept",
    response_model=DeliveryResponse,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def accept_delivery(
    delivery_id: str,
    data: Optional[DeliveryAccept] = None,
    user: User = Depends(courier_roles),
    db: AsyncSession = Depends(get_db),
) -> DeliveryResponse:
    """Take a waiting delivery; the first courier wins, the others get 409."""
    if user.role == UserRole.ADMIN:
        if not data or not data.livreur_id:
            raise HTTPException(status_code=400, detail="livreur_id is required")
        result = await db.execute(select(Livreur).where(Livreur.id == data.livreur_id))
        livreur = result.scalar_one_or_none()
        if not livreur:
            raise not_found("Livreur")
    else:
        livreur = require_livreur(user)
    _ensure_approved(livreur)

    delivery = await get_delivery_or_404(db, delivery_id)
    if delivery.order.payment is None or delivery.order.payment.status != PaymentStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Order is not paid yet")

    try:
        await accept_delivery_flow(db, delivery, livreur)
    except DeliveryTaken as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LifecycleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()

    delivery = await get_delivery_or_404(db, delivery_id, refresh=True)
    await publish(await get_order_or_404(db, delivery.order_id, refresh=True))

    return DeliveryResponse.model_validate(delivery)


@router.put("/{delivery_id}/status", response_model=DeliveryResponse)
async def update_delivery_status(
    delivery_id: str,
    data: DeliveryStatusUpdate,
    user: User = Depends(courier_roles),
    db: AsyncSession = Depends(get_db),
) -> DeliveryResponse:
    delivery = await get_delivery_or_404(db, delivery_id)
    _ensure_assigned(user, delivery)

    try:
        await change_delivery_status(db, delivery, data.status)
    except LifecycleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()

    delivery = await get_delivery_or_404(db, delivery_id, refresh=True)
    logger.info(f"Delivery {delivery_id} -> {delivery.status.value}")
    await publish(await get_order_or_404(db, delivery.order_id, refresh=True))

    return DeliveryResponse.model_validate(delivery)
