"""
Mock Culinary Assistant

Canned but context-aware answers so the AI endpoints work offline.
"""

import json
import logging
from typing import Optional

from marketplace.services.ai.base import AssistantResult, BaseAssistantService

logger = logging.getLogger(__name__)

# Dishes per cuisine keyword, used to build menu suggestions
_DISHES = {
    "sénégal": ("Pastels au thon", "Thiéboudienne", "Thiakry"),
    "ivoir": ("Alloco", "Garba", "Dêguê"),
    "cameroun": ("Beignets haricots", "Ndolé", "Gâteau de manioc"),
    "antill": ("Accras de morue", "Colombo de poulet", "Blanc-manger coco"),
    "créole": ("Boudin créole", "Rougail saucisses", "Flan coco"),
}
_DEFAULT_DISHES = ("Accras de morue", "Poulet yassa", "Salade de fruits exotiques")


class MockAssistantService(BaseAssistantService):

    @property
    def provider_name(self) -> str:
        return "mock"

    async def chat(self, message: str) -> AssistantResult:
        logger.debug(f"Mock assistant: {message[:50]}")
        answer = (
            "Bonne question ! Pour découvrir la cuisine afro-caribéenne, "
            "essayez un Poulet yassa ou un Colombo : épicés, parfumés et généreux. "
            f"Vous m'avez demandé : « {message.strip()} »."
        )
        return AssistantResult(success=True, content=answer, model="mock", tokens=len(answer.split()))

    async def menu_suggestions(
        self,
        cuisine_type: str,
        dietary_restrictions: list[str],
        occasion: Optional[str] = None,
    ) -> AssistantResult:
        key = next((k for k in _DISHES if k in cuisine_type.lower()), None)
        starter, main, dessert = _DISHES[key] if key else _DEFAULT_DISHES
        note = f"Adapté : {', '.join(dietary_restrictions)}" if dietary_restrictions else "Sans restriction"

        menu = {
            "occasion": occasion or "repas",
            "entree": {"nom": starter, "description": note, "ingredients": []},
            "plat_principal": {"nom": main, "description": note, "ingredients": []},
            "dessert": {"nom": dessert, "description": note, "ingredients": []},
        }
        return AssistantResult(success=True, content=json.dumps(menu, ensure_ascii=False), model="mock")

    async def health_check(self) -> bool:
        return True
