"""
Loyalty Endpoints

Points, rewards, subscriptions and referrals. Business rule violations
raised by the loyalty service are answered with 400.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import get_user_or_404, not_found
from marketplace.core.security import ensure_self_or_admin, get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import User, UserRole
from marketplace.schemas import (
    LoyaltyAccountCreate,
    LoyaltyAccountResponse,
    PointsAddRequest,
    RedeemRequest,
    ReferralApplyRequest,
    SubscribeRequest,
    SubscriptionCancelRequest,
)
from marketplace.services import loyalty

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/loyalty", tags=["Loyalty"])


@router.post("/account", response_model=LoyaltyAccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: LoyaltyAccountCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LoyaltyAccountResponse:
    ensure_self_or_admin(user, data.user_id)
    await get_user_or_404(db, data.user_id)
    account = await loyalty.get_or_create_account(db, data.user_id)
    await db.commit()
    return LoyaltyAccountResponse.model_validate(account)


@router.get("/account/{user_id}")
async def get_account(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    ensure_self_or_admin(user, user_id)
    account = await loyalty.get_account(db, user_id)
    if not account:
        raise not_found("Loyalty account")

    next_tier = next(
        ({"tier": tier.value, "threshold": threshold}
         for threshold, tier in reversed(loyalty.TIER_THRESHOLDS)
         if account.lifetime_spent < threshold),
        None,
    )
    return {
        **LoyaltyAccountResponse.model_validate(account).model_dump(),
        "multiplier": loyalty.TIER_MULTIPLIERS[account.tier],
        "next_tier": next_tier,
        "referral_code": loyalty.referral_code_for(user_id),
    }


@router.post("/points/add")
async def add_points(
    data: PointsAddRequest,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await get_user_or_404(db, data.user_id)
    result = await loyalty.add_order_points(db, data.user_id, data.order_amount)
    await db.commit()
    return result


@router.get("/rewards")
async def list_rewards() -> list[dict[str, Any]]:
    return loyalty.REWARDS


@router.post("/rewards/redeem")
async def redeem(
    data: RedeemRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    ensure_self_or_admin(user, data.user_id)
    try:
        result = await loyalty.redeem_reward(db, data.user_id, data.reward_id)
    except loyalty.LoyaltyError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()

    logger.info(f"Reward {data.reward_id} redeemed by {data.user_id}")
    return result


@router.get("/subscription/plans")
async def subscription_plans() -> list[dict[str, Any]]:
    return [{"plan": plan.value, **details} for plan, details in loyalty.SUBSCRIPTION_PLANS.items()]


@router.post("/subscription/subscribe")
async def subscribe(
    data: SubscribeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    ensure_self_or_admin(user, data.user_id)
    try:
        result = await loyalty.subscribe(db, data.user_id, data.plan, data.auto_renew)
    except loyalty.LoyaltyError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()
    return result


@router.post("/subscription/cancel")
async def cancel_subscription(
    data: SubscriptionCancelRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    ensure_self_or_admin(user, data.user_id)
    try:
        result = await loyalty.cancel_subscription(db, data.user_id)
    except loyalty.LoyaltyError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()
    return result


@router.get("/referral/code/{user_id}")
async def referral_code(user_id: str, user: User = Depends(get_current_user)) -> dict[str, str]:
    ensure_self_or_admin(user, user_id)
    return {"user_id": user_id, "referral_code": loyalty.referral_code_for(user_id)}


@router.post("/referral/apply")
async def apply_referral(
    data: ReferralApplyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    ensure_self_or_admin(user, data.user_id)
    try:
        result = await loyalty.apply_referral(db, data.user_id, data.referral_code)
    except loyalty.LoyaltyError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await db.commit()
    return result
