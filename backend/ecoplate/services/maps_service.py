"""
EcoPlate Backend — Google Maps Proxy
=====================================

What:  Server-side proxy for Google Places autocomplete and place details,
       so the Maps API key never reaches the browser.
How:   One httpx.AsyncClient request per call, translating Google's
       {"status": ...} envelope into EcoPlate exceptions.

Status handling:
    OK            → results
    ZERO_RESULTS  → [] for autocomplete, 404 "Place not found" for details
    anything else → 502 with Google's error_message
    network error → 502 "Failed to reach Google Maps API"
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ecoplate.config import settings
from ecoplate.exceptions import (
    ConfigurationError,
    NotFoundError,
    UpstreamServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class MapsService:

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # transport is injectable so tests can use httpx.MockTransport
        self._transport = transport

    def _api_key(self) -> str:
        if not settings.google_maps_api_key:
            raise ConfigurationError(message="Google Maps API key not configured")
        return settings.google_maps_api_key

    async def _get(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{settings.maps_base_url.rstrip('/')}/{endpoint}/json"
        try:
            async with httpx.AsyncClient(
                timeout=settings.maps_timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params=params)
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Google Maps %s request failed: %s", endpoint, str(e))
            raise UpstreamServiceError(
                message="Failed to reach Google Maps API",
                context={"endpoint": endpoint, "error_type": type(e).__name__},
            )

        if not isinstance(payload, dict):
            raise UpstreamServiceError(message="Unexpected response from Google Maps API")
        return payload

    @staticmethod
    def _raise_for_status(payload: Dict[str, Any], endpoint: str) -> None:
        status = payload.get("status")
        logger.warning("Google Maps %s returned status %s", endpoint, status)
        raise UpstreamServiceError(
            message=payload.get("error_message") or f"Google Maps API error: {status}",
            context={"status": status},
        )

    async def autocomplete(self, query: Optional[str], country: Optional[str] = "sg") -> List[Dict[str, str]]:
        """Address suggestions: [{place_id, description, main_text, secondary_text}]."""
        if not query or not query.strip():
            raise ValidationError(message="Query is required", field="query")

        payload = await self._get(
            "autocomplete",
            {
                "input": query.strip(),
                "components": f"country:{(country or 'sg').lower()}",
                "key": self._api_key(),
            },
        )

        status = payload.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            self._raise_for_status(payload, "autocomplete")

        predictions = []
        for item in payload.get("predictions") or []:
            formatting = item.get("structured_formatting") or {}
            predictions.append({
                "place_id": item.get("place_id", ""),
                "description": item.get("description", ""),
                "main_text": formatting.get("main_text", ""),
                "secondary_text": formatting.get("secondary_text", ""),
            })
        return predictions

    async def place_details(self, place_id: Optional[str]) -> Dict[str, Any]:
        """{address, latitude, longitude} for one place."""
        if not place_id or not place_id.strip():
            raise ValidationError(message="Place ID is required", field="place_id")

        payload = await self._get(
            "details",
            {
                "place_id": place_id.strip(),
                "fields": "geometry,formatted_address",
                "key": self._api_key(),
            },
        )

        status = payload.get("status")
        if status in ("NOT_FOUND", "ZERO_RESULTS"):
            raise NotFoundError(resource="Place", resource_id=place_id)
        if status != "OK":
            self._raise_for_status(payload, "details")

        result = payload.get("result")
        if not result:
            raise NotFoundError(resource="Place", resource_id=place_id)

        location = (result.get("geometry") or {}).get("location") or {}
        if "lat" not in location or "lng" not in location:
            raise UpstreamServiceError(message="Place has no coordinates")

        return {
            "address": result.get("formatted_address", ""),
            "latitude": location["lat"],
            "longitude": location["lng"],
        }


maps_service = MapsService()
