"""
AI features: the culinary assistant provider (mock or OpenAI), content-based
recommendations and the sentiment / delivery time / fraud scorers.
"""

from functools import lru_cache

from marketplace.core.config import get_settings
from marketplace.services.ai.base import AssistantResult, BaseAssistantService
from marketplace.services.ai.mock import MockAssistantService
from marketplace.services.ai.openai import OpenAIAssistantService


@lru_cache()
def get_assistant_service() -> BaseAssistantService:
    if get_settings().use_real_services:
        return OpenAIAssistantService()
    return MockAssistantService()


__all__ = [
    "get_assistant_service",
    "AssistantResult",
    "BaseAssistantService",
    "MockAssistantService",
    "OpenAIAssistantService",
]
