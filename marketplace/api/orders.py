"""
Order Endpoints

Order placement, tracking and status changes, plus the admin back-office
(overview, transactions, platform config, finance report export).

Creating an order also creates its Payment (PENDING) and its Delivery
(WAITING). Prices always come from the menu, never from the request.
"""

import logging
from datetime import timedelta
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.api.access import (
    ensure_order_access,
    ensure_restaurant_owner,
    get_order_or_404,
    get_restaurant_or_404,
    not_found,
    require_client,
)
from marketplace.core.security import get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import (
    Client,
    Delivery,
    Livreur,
    MenuItem,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Restaurateur,
    User,
    UserRole,
    ensure_platform_config,
    utcnow,
)
from marketplace.schemas import (
    AdminConfigResponse,
    AdminConfigUpdate,
    ClientOrderSummary,
    ErrorResponse,
    OrderCreate,
    OrderResponse,
    OrderStatusUpdate,
)
from marketplace.services.ai.insights import predict_delivery_time
from marketplace.services.lifecycle import (
    FINAL_ORDER_STATUSES,
    LifecycleError,
    cancel_order as cancel_order_flow,
    change_order_status,
    publish,
)
from marketplace.services.support import record_audit
from marketplace.tasks import export_finance_report

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])

admin_only = require_roles(UserRole.ADMIN)


# =============================================================================
# HELPERS
# =============================================================================

async def _resolve_client(db: AsyncSession, user: User, client_id: Optional[str]) -> Client:
    if user.role != UserRole.ADMIN:
        return require_client(user)
    if not client_id:
        raise HTTPException(status_code=400, detail="client_id is required")
    result = await db.execute(select(Client).where(Client.id == client_id))
    client = result.scalar_one_or_none()
    if not client:
        raise not_found("Client")
    return client


async def _priced_items(db: AsyncSession, data: OrderCreate) -> tuple[list[OrderItem], float]:
    """Build order lines at menu prices; 400 on unknown or foreign items."""
    ids = {line.menu_item_id for line in data.items}
    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(ids)))
    menu = {item.id: item for item in result.scalars().all()}

    lines = []
    total = 0.0
    for line in data.items:
        item = menu.get(line.menu_item_id)
        if item is None or item.restaurant_id != data.restaurant_id:
            raise HTTPException(status_code=400, detail=f"Invalid menu item: {line.menu_item_id}")
        if not item.is_available:
            raise HTTPException(status_code=400, detail=f"Menu item unavailable: {item.name}")
        lines.append(OrderItem(menu_item_id=item.id, quantity=line.quantity, price=item.price))
        total += item.price * line.quantity

    return lines, round(total, 2)


def _orders_query():
    return select(Order).order_by(Order.created_at.desc())


def _transaction_row(payment: Payment, commission_percent: float) -> dict[str, Any]:
    order = payment.order
    commission = (
        round(payment.amount * commission_percent / 100, 2)
        if payment.status == PaymentStatus.COMPLETED else 0.0
    )
    return {
        "payment_id": payment.id,
        "order_id": payment.order_id,
        "restaurant": order.restaurant.name if order and order.restaurant else None,
        "client_email": order.client.user.email if order and order.client else None,
        "amount": payment.amount,
        "platform_commission": commission,
        "status": payment.status.value,
        "payment_method": payment.payment_method.value,
        "transaction_id": payment.transaction_id,
        "created_at": payment.created_at.isoformat(),
    }


async def _count(db: AsyncSession, query) -> int:
    result = await db.execute(query)
    return result.scalar() or 0


# =============================================================================
# ADMIN BACK-OFFICE
# =============================================================================

@router.get("/admin/overview")
async def admin_overview(
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Platform KPIs for the admin dashboard."""
    now = utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    config = await ensure_platform_config(db)

    rows = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
    users_by_role = {role.value: 0 for role in UserRole}
    users_by_role.update({role.value: count for role, count in rows.all()})

    rows = await db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
    orders_by_status = {s.value: 0 for s in OrderStatus}
    orders_by_status.update({s.value: count for s, count in rows.all()})

    month_revenue = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0.0)).where(
            Payment.status == PaymentStatus.COMPLETED,
            Payment.created_at >= month_start,
        )
    )
    month_revenue = round(float(month_revenue.scalar() or 0.0), 2)

    pending_amount = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0.0)).where(Payment.status == PaymentStatus.PENDING)
    )

    goal = config.monthly_revenue_goal
    return {
        "users": {
            "total": sum(users_by_role.values()),
            "by_role": users_by_role,
            "new_last_24h": await _count(
                db, select(func.count(User.id)).where(User.created_at >= now - timedelta(hours=24))
            ),
        },
        "pending_approvals": {
            "restaurateurs": await _count(
                db, select(func.count(Restaurateur.id)).where(Restaurateur.is_approved.is_(False))
            ),
            "livreurs": await _count(
                db, select(func.count(Livreur.id)).where(Livreur.is_approved.is_(False))
            ),
        },
        "orders": {
            "total": sum(orders_by_status.values()),
            "by_status": orders_by_status,
        },
        "revenue": {
            "month": month_revenue,
            "goal": goal,
            "progress_percent": round(month_revenue / goal * 100, 1) if goal else 0.0,
            "platform_commission_month": round(month_revenue * config.default_commission_percent / 100, 2),
        },
        "pending_payments_amount": round(float(pending_amount.scalar() or 0.0), 2),
        "average_commission_percent": config.default_commission_percent,
        "currency": config.currency,
        "generated_at": now,
    }


@router.get("/admin/transactions")
async def admin_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Paged payments with totals and a per-status breakdown."""
    config = await ensure_platform_config(db)

    query = select(Payment).options(selectinload(Payment.order)).order_by(Payment.created_at.desc())
    count_query = select(func.count(Payment.id))
    if status_filter:
        query = query.where(Payment.status == status_filter)
        count_query = count_query.where(Payment.status == status_filter)

    total = await _count(db, count_query)
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    items = [_transaction_row(p, config.default_commission_percent) for p in result.scalars().all()]

    rows = await db.execute(
        select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0.0))
        .group_by(Payment.status)
    )
    breakdown = {s.value: {"count": 0, "amount": 0.0} for s in PaymentStatus}
    for payment_status, count, amount in rows.all():
        breakdown[payment_status.value] = {"count": count, "amount": round(float(amount), 2)}

    return {
        "items": items,
        "page": page,
        "page_size": page_size,
        "total": total,
        "totals": {
            "amount": round(sum(b["amount"] for b in breakdown.values()), 2),
            "completed_amount": breakdown[PaymentStatus.COMPLETED.value]["amount"],
            "platform_commission": round(
                breakdown[PaymentStatus.COMPLETED.value]["amount"] * config.default_commission_percent / 100, 2
            ),
        },
        "by_status": breakdown,
    }


@router.get("/admin/config", response_model=AdminConfigResponse)
async def get_admin_config(
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> AdminConfigResponse:
    config = await ensure_platform_config(db)
    await db.commit()
    return AdminConfigResponse.model_validate(config)


@router.put("/admin/config", response_model=AdminConfigResponse)
async def update_admin_config(
    data: AdminConfigUpdate,
    user: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> AdminConfigResponse:
    config = await ensure_platform_config(db)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "currency" in changes:
        changes["currency"] = changes["currency"].upper()
    for field, value in changes.items():
        setattr(config, field, value)
    await record_audit(
        db, user.id, "PLATFORM_CONFIG_UPDATED", entity_type="PlatformConfig", entity_id="1", details=changes
    )
    await db.commit()

    logger.info(f"Platform config updated by {user.email}: {sorted(changes)}")
    return AdminConfigResponse.model_validate(config)


@router.post("/admin/reports/export", status_code=status.HTTP_202_ACCEPTED)
async def export_report(
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Queue the finance workbook export."""
    config = await ensure_platform_config(db)
    result = await db.execute(
        select(Payment).options(selectinload(Payment.order)).order_by(Payment.created_at.asc())
    )
    rows = [_transaction_row(p, config.default_commission_percent) for p in result.scalars().all()]

    task = export_finance_report.delay(rows)
    logger.info(f"📋 Finance report export queued: task {task.id} ({len(rows)} rows)")

    return {"success": True, "task_id": task.id, "rows": len(rows)}


# =============================================================================
# CLIENT ENDPOINTS
# =============================================================================

@router.post(
    "/",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def create_order(
    data: OrderCreate,
    user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    client = await _resolve_client(db, user, data.client_id)
    restaurant = await get_restaurant_or_404(db, data.restaurant_id)
    if not restaurant.is_active:
        raise HTTPException(status_code=400, detail="Restaurant is not accepting orders")

    lines, total = await _priced_items(db, data)

    order = Order(
        client_id=client.id,
        restaurant_id=restaurant.id,
        status=OrderStatus.PENDING,
        total_amount=total,
        delivery_address=data.delivery_address,
        delivery_city=data.delivery_city,
        delivery_postal_code=data.delivery_postal_code,
        notes=data.notes,
        items=lines,
    )
    db.add(order)
    await db.flush()

    estimate = predict_delivery_time(sum(line.quantity for line in lines), utcnow(), restaurant.id)
    db.add(Payment(
        order_id=order.id,
        amount=total,
        status=PaymentStatus.PENDING,
        payment_method=PaymentMethod.CARD,
    ))
    db.add(Delivery(
        order_id=order.id,
        pickup_address=f"{restaurant.address}, {restaurant.city}",
        delivery_address=f"{data.delivery_address}, {data.delivery_city}",
        estimated_time=estimate["predicted_delivery_time"],
    ))
    await db.commit()

    order = await get_order_or_404(db, order.id, refresh=True)
    logger.info(f"Order {order.id} created: {total:.2f} @ {restaurant.name}")
    await publish(order, delivery=False)

    return OrderResponse.model_validate(order)


@router.get("/me", response_model=List[OrderResponse])
async def my_orders(
    user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> List[OrderResponse]:
    """The caller's orders; admins get every order."""
    query = _orders_query()
    if user.role != UserRole.ADMIN:
        query = query.where(Order.client_id == require_client(user).id)
    result = await db.execute(query)
    return [OrderResponse.model_validate(o) for o in result.scalars().all()]


@router.get("/client/me/summary", response_model=ClientOrderSummary)
async def my_summary(
    user: User = Depends(require_roles(UserRole.CLIENT, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> ClientOrderSummary:
    client = require_client(user)
    result = await db.execute(select(Order).where(Order.client_id == client.id))
    orders = result.scalars().all()

    return ClientOrderSummary(
        orders_count=len(orders),
        active_orders=sum(1 for o in orders if o.status not in FINAL_ORDER_STATUSES),
        total_spent=round(sum(o.total_amount for o in orders if o.status != OrderStatus.CANCELLED), 2),
        last_order_at=max((o.created_at for o in orders), default=None),
    )


@router.get("/client/{client_id}", response_model=List[OrderResponse])
async def orders_by_client(
    client_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[OrderResponse]:
    if user.role != UserRole.ADMIN and (user.client is None or user.client.id != client_id):
        raise HTTPException(status_code=403, detail="Forbidden")
    result = await db.execute(_orders_query().where(Order.client_id == client_id))
    return [OrderResponse.model_validate(o) for o in result.scalars().all()]


@router.get("/restaurant/{restaurant_id}", response_model=List[OrderResponse])
async def orders_by_restaurant(
    restaurant_id: str,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    user: User = Depends(require_roles(UserRole.RESTAURATEUR, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> List[OrderResponse]:
    ensure_restaurant_owner(user, await get_restaurant_or_404(db, restaurant_id))

    query = _orders_query().where(Order.restaurant_id == restaurant_id)
    if status_filter:
        query = query.where(Order.status == status_filter)
    result = await db.execute(query)
    return [OrderResponse.model_validate(o) for o in result.scalars().all()]


@router.get("/{order_id}", response_model=OrderResponse, responses={404: {"model": ErrorResponse}})
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    ensure_order_access(user, order)
    return OrderResponse.model_validate(order)


# =============================================================================
# STATUS CHANGES
# =============================================================================

@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    user: User = Depends(require_roles(UserRole.RESTAURATEUR, UserRole.LIVREUR, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    if user.role == UserRole.RESTAURATEUR:
        ensure_restaurant_owner(user, order.restaurant)
    elif user.role == UserRole.LIVREUR:
        ensure_order_access(user, order)

    try:
        await change_order_status(db, order, data.status)
    except LifecycleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()

    order = await get_order_or_404(db, order_id, refresh=True)
    logger.info(f"Order {order_id} -> {order.status.value} by {user.role.value}")
    await publish(order, delivery=order.status == OrderStatus.CANCELLED)

    return OrderResponse.model_validate(order)


@router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    user: User = Depends(require_roles(UserRole.CLIENT, UserRole.RESTAURATEUR, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    if user.role == UserRole.RESTAURATEUR:
        ensure_restaurant_owner(user, order.restaurant)
    else:
        ensure_order_access(user, order)

    try:
        await cancel_order_flow(db, order)
    except LifecycleError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()

    order = await get_order_or_404(db, order_id, refresh=True)
    await publish(order)

    return OrderResponse.model_validate(order)
