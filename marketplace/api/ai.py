"""
AI Recommendation Endpoints

Recommendations and analytics run in-process; free-form chat and menu
suggestions go through the configured assistant provider (OpenAI or mock).
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.models import utcnow
from marketplace.schemas import (
    AIChatRequest,
    DeliveryTimeRequest,
    DishRecommendationRequest,
    FraudDetectionRequest,
    MenuSuggestionRequest,
    RestaurantRecommendationRequest,
    SentimentRequest,
    UserPreferences,
)
from marketplace.services.ai import get_assistant_service
from marketplace.services.ai.insights import analyze_sentiment, detect_fraud, predict_delivery_time
from marketplace.services.ai.recommendations import recommend_dishes, recommend_restaurants

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])


def _require_subject(user_id, preferences) -> UserPreferences:
    if not user_id and preferences is None:
        raise HTTPException(status_code=400, detail="user_id or preferences is required")
    return preferences or UserPreferences()


@router.post("/recommendations/restaurants")
async def restaurant_recommendations(
    data: RestaurantRecommendationRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    preferences = _require_subject(data.user_id, data.preferences)
    ranked = await recommend_restaurants(db, data.user_id or "", preferences, data.limit)
    return {"user_id": data.user_id, "recommendations": ranked}


@router.post("/recommendations/dishes")
async def dish_recommendations(
    data: DishRecommendationRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    preferences = _require_subject(data.user_id, data.preferences)
    ranked = await recommend_dishes(db, data.user_id or "", data.restaurant_id, preferences, data.limit)
    return {"user_id": data.user_id, "restaurant_id": data.restaurant_id, "recommendations": ranked}


@router.post("/chat")
async def chat(data: AIChatRequest) -> dict[str, Any]:
    result = await get_assistant_service().chat(data.message)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error_message or "Assistant unavailable")
    return {"message": data.message, "response": result.content, "model": result.model}


@router.post("/menu-suggestions")
async def menu_suggestions(data: MenuSuggestionRequest) -> dict[str, Any]:
    result = await get_assistant_service().menu_suggestions(
        data.cuisine_type,
        data.dietary_restrictions,
        data.occasion,
    )
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error_message or "Assistant unavailable")

    try:
        suggestions = json.loads(result.content or "")
    except json.JSONDecodeError:
        # Models sometimes answer in prose
        suggestions = {"raw": result.content}

    return {"cuisine_type": data.cuisine_type, "suggestions": suggestions}


@router.post("/sentiment-analysis")
async def sentiment_analysis(data: SentimentRequest) -> dict[str, Any]:
    return analyze_sentiment(data.review)


@router.post("/delivery-time-prediction")
async def delivery_time_prediction(data: DeliveryTimeRequest) -> dict[str, Any]:
    at = data.timestamp or utcnow()
    return predict_delivery_time(data.order_size, at, data.restaurant_id)


@router.post("/fraud-detection")
async def fraud_detection(data: FraudDetectionRequest) -> dict[str, Any]:
    result = detect_fraud(data.amount, data.order_frequency, data.user_id)
    if result["risk_level"] != "low":
        logger.warning(f"Fraud check {result['risk_level']} for user {data.user_id}: {result['flags']}")
    return result
