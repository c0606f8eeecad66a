"""
EcoPlate Backend — Abstract Vision Service Interface
=====================================================

What:  Contract for the AI provider that reads meal photos.
How:   Concrete implementations inherit from VisionService and implement
       identify_ingredients() and analyze_waste().
Who:   Called by the consumption routes.
When:  Step one (raw ingredients photo) and step two (leftovers photo) of
       logging a meal.

Images travel as base64 strings, optionally with a data URL prefix
("data:image/png;base64,...").
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class VisionService(ABC):
    """
    Abstract interface for food recognition from images.

    Contract:
        - Return plain dicts decoded from the model's JSON output
        - Provider errors are wrapped in LLMServiceError
        - A missing API key raises ConfigurationError before any network call
    """

    @abstractmethod
    async def identify_ingredients(
        self,
        image_base64: str,
        fridge_items: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """
        Match ingredients visible in a photo to the user's fridge items.

        Args:
            image_base64: Photo of the raw ingredients.
            fridge_items: Unconsumed products as
                {id, name, category, quantity, unit_price, co2_emission}.

        Returns:
            A list of {product_id, name, matched_product_name,
            estimated_quantity, category, unit_price, co2_emission,
            confidence}. Empty when nothing is recognised.

        Raises:
            ConfigurationError: no API key.
            LLMServiceError: provider failure or unparseable response.
            CircuitBreakerOpenError: provider is failing repeatedly.
        """
        ...

    @abstractmethod
    async def analyze_waste(
        self,
        image_base64: str,
        ingredients: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Estimate how much of each used ingredient was left over.

        Returns:
            {"waste_items": [{product_id, product_name, quantity_wasted}],
             "overall_observation": str}
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight reachability check; never raises."""
        ...
