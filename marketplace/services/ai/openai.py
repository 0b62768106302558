"""
OpenAI Culinary Assistant

Chat completions through the async OpenAI client. Transient failures are
retried with exponential backoff (tenacity); after the last attempt the
error is returned as a failed AssistantResult.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from tenacity import RetryError, retry, stop_after_attempt, wait_exponential

from marketplace.core.config import get_settings
from marketplace.services.ai.base import (
    ASSISTANT_SYSTEM_PROMPT,
    CHEF_SYSTEM_PROMPT,
    AssistantResult,
    BaseAssistantService,
    menu_prompt,
)

logger = logging.getLogger(__name__)


class OpenAIAssistantService(BaseAssistantService):

    def __init__(self):
        settings = get_settings()

        if not settings.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY is required outside development mode. "
                "Set it in your .env file or environment variables."
            )

        self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        self._model = settings.openai_model

        logger.info(f"OpenAIAssistantService initialized (model={self._model})")

    @property
    def provider_name(self) -> str:
        return "openai"

    @retry(wait=wait_exponential(min=1, max=8), stop=stop_after_attempt(3))
    async def _complete(self, system: str, user: str, max_tokens: int, temperature: float):
        return await self._client.chat.completions.create(
            model=self._model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=20,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )

    async def _ask(self, system: str, user: str, max_tokens: int, temperature: float) -> AssistantResult:
        try:
            completion = await self._complete(system, user, max_tokens, temperature)
        except (OpenAIError, RetryError) as e:
            logger.error(f"OpenAI: completion failed - {e}")
            return AssistantResult(success=False, error_message="AI service unavailable")

        return AssistantResult(
            success=True,
            content=(completion.choices[0].message.content or "").strip(),
            model=completion.model,
            tokens=completion.usage.total_tokens if completion.usage else None,
        )

    async def chat(self, message: str) -> AssistantResult:
        return await self._ask(ASSISTANT_SYSTEM_PROMPT, message, max_tokens=500, temperature=0.7)

    async def menu_suggestions(
        self,
        cuisine_type: str,
        dietary_restrictions: list[str],
        occasion: Optional[str] = None,
    ) -> AssistantResult:
        prompt = menu_prompt(cuisine_type, dietary_restrictions, occasion)
        return await self._ask(CHEF_SYSTEM_PROMPT, prompt, max_tokens=1000, temperature=0.8)

    async def health_check(self) -> bool:
        try:
            await self._client.models.retrieve(self._model)
        except OpenAIError as e:
            logger.error(f"OpenAI: Health check failed - {e}")
            return False
        return True
