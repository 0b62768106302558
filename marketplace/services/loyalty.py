"""
Loyalty Program

Points, tiers, rewards, subscriptions and referrals for clients.

Tiers by lifetime spend:
    PLATINUM >= 1000, GOLD >= 500, SILVER >= 200, else BRONZE

Points for an order = floor(floor(amount) * tier multiplier).
"""

import logging
import math
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import get_settings
from marketplace.models import (
    LoyaltyAccount,
    RewardRedemption,
    SubscriptionPlan,
    TierLevel,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)

SUBSCRIPTION_PERIOD = timedelta(days=30)

TIER_THRESHOLDS = [
    (1000, TierLevel.PLATINUM),
    (500, TierLevel.GOLD),
    (200, TierLevel.SILVER),
]

TIER_MULTIPLIERS = {
    TierLevel.BRONZE: 1.0,
    TierLevel.SILVER: 1.25,
    TierLevel.GOLD: 1.5,
    TierLevel.PLATINUM: 2.0,
}

REWARDS = [
    {
        "id": "r1",
        "name": "5€ de réduction",
        "description": "Réduction de 5€ sur votre prochaine commande",
        "points_cost": 500,
        "type": "discount",
        "value": 5.0,
        "expiry_days": 30,
    },
    {
        "id": "r2",
        "name": "Livraison gratuite",
        "description": "Une livraison offerte",
        "points_cost": 300,
        "type": "free_delivery",
        "value": 2.5,
        "expiry_days": 14,
    },
    {
        "id": "r3",
        "name": "10€ de réduction",
        "description": "Réduction de 10€ sur une commande de 40€ minimum",
        "points_cost": 1000,
        "type": "discount",
        "value": 10.0,
        "expiry_days": 30,
    },
    {
        "id": "r4",
        "name": "Dessert offert",
        "description": "Un dessert au choix offert",
        "points_cost": 200,
        "type": "free_item",
        "value": 5.0,
        "expiry_days": 7,
    },
]

SUBSCRIPTION_PLANS = {
    SubscriptionPlan.FREE: {
        "price": 0.0,
        "bonus_points": 0,
        "benefits": ["Commandes standard", "Support email"],
    },
    SubscriptionPlan.BASIC: {
        "price": 4.99,
        "bonus_points": 100,
        "benefits": [
            "Livraison gratuite sur commandes > 20€",
            "Support prioritaire",
            "100 points bonus par mois",
        ],
    },
    SubscriptionPlan.PREMIUM: {
        "price": 9.99,
        "bonus_points": 250,
        "benefits": [
            "Livraison gratuite illimitée",
            "Support prioritaire 24/7",
            "250 points bonus par mois",
            "5% de cashback",
            "Accès anticipé aux promotions",
        ],
    },
    SubscriptionPlan.VIP: {
        "price": 19.99,
        "bonus_points": 500,
        "benefits": [
            "Livraison gratuite illimitée express",
            "Support VIP dédié",
            "500 points bonus par mois",
            "10% de cashback",
            "Accès exclusif aux événements",
            "Réservation de tables prioritaire",
            "Menu personnalisé",
        ],
    },
}


class LoyaltyError(ValueError):
    """Business rule violation (unknown reward, not enough points...)."""


def determine_tier(lifetime_spent: float) -> TierLevel:
    for threshold, tier in TIER_THRESHOLDS:
        if lifetime_spent >= threshold:
            return tier
    return TierLevel.BRONZE


def calculate_points(order_amount: float, tier: TierLevel) -> int:
    return math.floor(math.floor(order_amount) * TIER_MULTIPLIERS[tier])


def referral_code_for(user_id: str) -> str:
    return f"REF{user_id[:6].upper()}"


def find_reward(reward_id: str) -> Optional[dict]:
    return next((r for r in REWARDS if r["id"] == reward_id), None)


# =============================================================================
# ACCOUNT OPERATIONS
# =============================================================================

async def get_account(db: AsyncSession, user_id: str) -> Optional[LoyaltyAccount]:
    result = await db.execute(select(LoyaltyAccount).where(LoyaltyAccount.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_account(db: AsyncSession, user_id: str) -> LoyaltyAccount:
    account = await get_account(db, user_id)
    if account:
        return account
    account = LoyaltyAccount(
        user_id=user_id,
        points=0,
        tier=TierLevel.BRONZE,
        lifetime_spent=0.0,
        subscription_plan=SubscriptionPlan.FREE,
        auto_renew=False,
    )
    db.add(account)
    await db.flush()
    logger.info(f"Loyalty account created for user {user_id}")
    return account


async def add_order_points(db: AsyncSession, user_id: str, order_amount: float) -> dict:
    """
    Credit points for a paid order and update the tier.

    Points use the tier held before the order; the tier is then
    recomputed from the new lifetime spend.
    """
    account = await get_or_create_account(db, user_id)
    earned = calculate_points(order_amount, account.tier)

    account.points += earned
    account.lifetime_spent = round(account.lifetime_spent + order_amount, 2)
    account.last_order_at = utcnow()
    previous_tier = account.tier
    account.tier = determine_tier(account.lifetime_spent)
    await db.flush()

    if account.tier != previous_tier:
        logger.info(f"User {user_id} promoted {previous_tier.value} -> {account.tier.value}")

    return {
        "user_id": user_id,
        "points_earned": earned,
        "new_balance": account.points,
        "tier": account.tier.value,
        "lifetime_spent": account.lifetime_spent,
    }


async def redeem_reward(db: AsyncSession, user_id: str, reward_id: str) -> dict:
    reward = find_reward(reward_id)
    if not reward:
        raise LoyaltyError("Reward not found")

    account = await get_or_create_account(db, user_id)
    if account.points < reward["points_cost"]:
        raise LoyaltyError("Not enough points")

    account.points -= reward["points_cost"]
    expires_at = utcnow() + timedelta(days=reward["expiry_days"])
    redemption = RewardRedemption(
        user_id=user_id,
        reward_id=reward_id,
        code=f"REWARD-{uuid.uuid4().hex[:10].upper()}",
        points_spent=reward["points_cost"],
        expires_at=expires_at,
    )
    db.add(redemption)
    await db.flush()

    return {
        "user_id": user_id,
        "reward": reward,
        "code": redemption.code,
        "expires_at": expires_at,
        "remaining_points": account.points,
    }


async def subscribe(db: AsyncSession, user_id: str, plan: SubscriptionPlan, auto_renew: bool = True) -> dict:
    """
    Start a one-month period on `plan`.

    Plan bonus points are credited once per period: switching plans while a
    period is running moves the account to the new plan without a new bonus.
    """
    details = SUBSCRIPTION_PLANS[plan]
    account = await get_or_create_account(db, user_id)

    now = utcnow()
    running = (
        account.subscription_plan != SubscriptionPlan.FREE
        and account.subscription_ends_at is not None
        and account.subscription_ends_at > now
    )
    if running and account.subscription_plan == plan:
        raise LoyaltyError(f"Already subscribed to {plan.value}")

    bonus = 0 if running else details["bonus_points"]

    account.subscription_plan = plan
    account.subscription_started_at = now
    account.subscription_ends_at = now + SUBSCRIPTION_PERIOD
    account.auto_renew = auto_renew and plan != SubscriptionPlan.FREE
    account.points += bonus
    await db.flush()

    logger.info(f"User {user_id} subscribed to {plan.value} (+{bonus} points)")

    return {
        "user_id": user_id,
        "plan": plan.value,
        "price": details["price"],
        "start_date": account.subscription_started_at,
        "end_date": account.subscription_ends_at,
        "auto_renew": account.auto_renew,
        "benefits": details["benefits"],
        "bonus_points": bonus,
        "points": account.points,
    }


async def cancel_subscription(db: AsyncSession, user_id: str) -> dict:
    """Stop renewal; benefits stay until the end of the paid period."""
    account = await get_account(db, user_id)
    if not account or account.subscription_plan == SubscriptionPlan.FREE:
        raise LoyaltyError("No active subscription")

    account.auto_renew = False
    await db.flush()

    return {
        "user_id": user_id,
        "message": "Subscription cancelled successfully",
        "effective_date": account.subscription_ends_at or utcnow(),
    }


async def apply_referral(db: AsyncSession, user_id: str, referral_code: str) -> dict:
    """Credit both sides of a referral, once per account."""
    code = referral_code.strip().upper()
    if not code.startswith("REF") or len(code) != 9:
        raise LoyaltyError("Invalid referral code")
    if code == referral_code_for(user_id):
        raise LoyaltyError("You cannot use your own referral code")

    account = await get_or_create_account(db, user_id)
    if account.referred_by:
        raise LoyaltyError("Referral already applied")

    prefix = code[3:].lower()
    result = await db.execute(select(User.id).where(User.id.like(f"{prefix}%")))
    candidates = [row for row in result.scalars().all() if row != user_id]
    if len(candidates) != 1:
        raise LoyaltyError("Invalid referral code")
    referrer_id = candidates[0]

    bonus = get_settings().referral_bonus_points
    referrer = await get_or_create_account(db, referrer_id)
    account.referred_by = referrer_id
    account.points += bonus
    referrer.points += bonus
    await db.flush()

    logger.info(f"Referral {code} applied by {user_id}")

    return {
        "user_id": user_id,
        "referral_code": code,
        "bonus_earned": bonus,
        "message": "Referral bonus applied successfully",
    }
