"""
Culinary Assistant Provider Interface

Free-text generation behind /api/ai/chat and /api/ai/menu-suggestions.
Implementations: MockAssistantService (development) and
OpenAIAssistantService (staging/production).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Optional


ASSISTANT_SYSTEM_PROMPT = (
    "Tu es un assistant culinaire spécialisé dans la cuisine afro-caribéenne. "
    "Tu aides les utilisateurs à découvrir de délicieux plats, à choisir des restaurants, "
    "et à répondre à leurs questions sur la cuisine africaine et caribéenne. "
    "Sois chaleureux, enthousiaste et informatif."
)

CHEF_SYSTEM_PROMPT = "Tu es un chef expert en cuisine afro-caribéenne."


def menu_prompt(cuisine_type: str, dietary_restrictions: list[str], occasion: Optional[str]) -> str:
    return (
        f"En tant que chef spécialisé en cuisine {cuisine_type}, "
        f"suggère un menu complet (entrée, plat principal, dessert) pour {occasion or 'un repas'}. "
        f"Restrictions alimentaires: {', '.join(dietary_restrictions) or 'aucune'}. "
        "Format: JSON avec nom, description, ingrédients pour chaque plat."
    )


@dataclass
class AssistantResult:
    success: bool
    content: Optional[str] = None
    model: Optional[str] = None
    tokens: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class BaseAssistantService(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def chat(self, message: str) -> AssistantResult:
        """Answer a free-form culinary question."""

    @abstractmethod
    async def menu_suggestions(
        self,
        cuisine_type: str,
        dietary_restrictions: list[str],
        occasion: Optional[str] = None,
    ) -> AssistantResult:
        """Suggest a starter, main and dessert; content is expected to be JSON."""

    @abstractmethod
    async def health_check(self) -> bool:
        pass
