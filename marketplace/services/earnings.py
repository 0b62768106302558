"""
Courier Earnings

Payout computation for couriers. Every delivered delivery earns:

    gross      = base_fee + variable_rate * order_total
    commission = gross * platform_commission_rate
    net        = gross - commission

Each amount is rounded to cents. Rates are read from the PlatformConfig row
so admins can change them without a redeploy.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import (
    Delivery,
    DeliveryStatus,
    Livreur,
    PlatformConfig,
    ensure_platform_config,
    utcnow,
)

logger = logging.getLogger(__name__)

# Used when no delivery carries an estimate yet
DEFAULT_WAIT_MINUTES = 15


@dataclass(frozen=True)
class PayoutRates:
    base_fee: float
    variable_rate: float
    platform_commission_rate: float
    min_withdrawal_amount: float

    @classmethod
    def from_config(cls, config: PlatformConfig) -> "PayoutRates":
        return cls(
            base_fee=config.courier_base_fee,
            variable_rate=config.courier_variable_rate,
            platform_commission_rate=config.courier_platform_commission_rate,
            min_withdrawal_amount=config.courier_min_withdrawal_amount,
        )

    @property
    def formula(self) -> str:
        return (
            f"{self.base_fee:.2f} + {self.variable_rate:.2%} x order total, "
            f"minus {self.platform_commission_rate:.0%} platform commission"
        )


@dataclass
class DeliveryEarning:
    gross: float
    platform_commission: float
    net: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_delivery_earning(order_total: float, rates: PayoutRates) -> DeliveryEarning:
    """Apply the payout formula to one delivered order."""
    gross = round(rates.base_fee + rates.variable_rate * order_total, 2)
    commission = round(gross * rates.platform_commission_rate, 2)
    return DeliveryEarning(gross=gross, platform_commission=commission, net=round(gross - commission, 2))


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def compute_metrics(
    deliveries: Iterable[Delivery],
    rates: PayoutRates,
    now: Optional[datetime] = None,
) -> dict:
    """
    Aggregate earnings and activity for one courier.

    Args:
        deliveries: Every delivery assigned to the courier, with their orders
        rates: Payout rates in force
        now: Reference time (naive UTC), defaults to the current time

    Returns:
        dict with earnings, stats, payouts, available_balance, can_withdraw
    """
    now = now or utcnow()
    today_start = _start_of_day(now)
    week_start = now - timedelta(days=7)

    deliveries = list(deliveries)
    total = today = week = 0.0
    payouts = []

    for delivery in deliveries:
        if delivery.status != DeliveryStatus.DELIVERED:
            continue
        order_total = delivery.order.total_amount if delivery.order else 0.0
        earning = compute_delivery_earning(order_total, rates)
        completed_at = delivery.completed_at or delivery.updated_at or delivery.created_at

        total += earning.net
        if completed_at >= today_start:
            today += earning.net
        if completed_at >= week_start:
            week += earning.net

        payouts.append({
            "delivery_id": delivery.id,
            "order_id": delivery.order_id,
            "order_total": round(order_total, 2),
            "completed_at": completed_at,
            **earning.to_dict(),
        })

    payouts.sort(key=lambda p: p["completed_at"], reverse=True)

    count = len(deliveries)
    taken = sum(1 for d in deliveries if d.status not in (DeliveryStatus.WAITING, DeliveryStatus.CANCELLED))
    cancelled = sum(1 for d in deliveries if d.status == DeliveryStatus.CANCELLED)
    # Deliveries without an estimate count as the default wait
    estimates = [d.estimated_time or DEFAULT_WAIT_MINUTES for d in deliveries]

    balance = round(total, 2)

    return {
        "earnings": {
            "today": round(today, 2),
            "week": round(week, 2),
            "total": balance,
            "formula": rates.formula,
        },
        "stats": {
            "deliveries_count": count,
            "acceptance_rate": round(taken / count * 100, 1) if count else 0.0,
            "cancellation_rate": round(cancelled / count * 100, 1) if count else 0.0,
            "average_wait_minutes": (
                round(sum(estimates) / len(estimates), 1) if estimates else DEFAULT_WAIT_MINUTES
            ),
        },
        "payouts": payouts,
        "available_balance": balance,
        "minimum_withdrawal": rates.min_withdrawal_amount,
        "can_withdraw": balance >= rates.min_withdrawal_amount,
    }


async def load_rates(db: AsyncSession) -> PayoutRates:
    return PayoutRates.from_config(await ensure_platform_config(db))


async def livreur_metrics(db: AsyncSession, livreur: Livreur) -> dict:
    """Metrics for one courier from the database."""
    rates = await load_rates(db)
    result = await db.execute(select(Delivery).where(Delivery.livreur_id == livreur.id))
    metrics = compute_metrics(result.scalars().all(), rates)
    logger.debug(f"Earnings computed for livreur {livreur.id}: {metrics['earnings']['total']:.2f}")
    return metrics
