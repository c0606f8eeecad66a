"""
EcoPlate Backend — Google Maps Proxy Tests
===========================================

httpx.MockTransport stands in for the Places API.
"""

from unittest.mock import patch

import httpx
import pytest

from ecoplate.config import settings
from ecoplate.exceptions import (
    ConfigurationError,
    NotFoundError,
    UpstreamServiceError,
    ValidationError,
)
from ecoplate.services.maps_service import MapsService


def _service(payload=None, status_code=200, error=None):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if error is not None:
            raise error
        return httpx.Response(status_code, json=payload)

    return MapsService(transport=httpx.MockTransport(handler)), requests


class TestAutocomplete:

    @pytest.mark.asyncio
    async def test_predictions_are_flattened(self):
        service, requests = _service({
            "status": "OK",
            "predictions": [{
                "place_id": "abc",
                "description": "Marina Bay Sands, Singapore",
                "structured_formatting": {"main_text": "Marina Bay Sands", "secondary_text": "Singapore"},
            }],
        })

        results = await service.autocomplete("  marina  ")

        assert results == [{
            "place_id": "abc",
            "description": "Marina Bay Sands, Singapore",
            "main_text": "Marina Bay Sands",
            "secondary_text": "Singapore",
        }]
        params = requests[0].url.params
        assert requests[0].url.path.endswith("/autocomplete/json")
        assert params["input"] == "marina"
        assert params["components"] == "country:sg"
        assert params["key"] == settings.google_maps_api_key

    @pytest.mark.asyncio
    async def test_zero_results(self):
        service, _ = _service({"status": "ZERO_RESULTS"})
        assert await service.autocomplete("zzzz", country="MY") == []

    @pytest.mark.asyncio
    async def test_blank_query(self):
        service, requests = _service({"status": "OK"})
        with pytest.raises(ValidationError, match="Query is required"):
            await service.autocomplete("   ")
        assert requests == []

    @pytest.mark.asyncio
    async def test_google_error_is_bad_gateway(self):
        service, _ = _service({"status": "REQUEST_DENIED", "error_message": "API key invalid"})
        with pytest.raises(UpstreamServiceError, match="API key invalid") as exc_info:
            await service.autocomplete("marina")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_network_error(self):
        service, _ = _service(error=httpx.ConnectError("boom"))
        with pytest.raises(UpstreamServiceError, match="Failed to reach Google Maps API"):
            await service.autocomplete("marina")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        service, _ = _service({"status": "OK"})
        with patch.object(settings, "google_maps_api_key", ""):
            with pytest.raises(ConfigurationError):
                await service.autocomplete("marina")


class TestPlaceDetails:

    @pytest.mark.asyncio
    async def test_coordinates_returned(self):
        service, requests = _service({
            "status": "OK",
            "result": {
                "formatted_address": "10 Bayfront Ave, Singapore 018956",
                "geometry": {"location": {"lat": 1.2834, "lng": 103.8607}},
            },
        })

        details = await service.place_details("abc")

        assert details == {
            "address": "10 Bayfront Ave, Singapore 018956",
            "latitude": 1.2834,
            "longitude": 103.8607,
        }
        assert requests[0].url.params["fields"] == "geometry,formatted_address"

    @pytest.mark.asyncio
    async def test_not_found(self):
        service, _ = _service({"status": "NOT_FOUND"})
        with pytest.raises(NotFoundError, match="Place not found"):
            await service.place_details("nope")

    @pytest.mark.asyncio
    async def test_missing_place_id(self):
        service, _ = _service({"status": "OK"})
        with pytest.raises(ValidationError, match="Place ID is required"):
            await service.place_details(None)

    @pytest.mark.asyncio
    async def test_no_geometry(self):
        service, _ = _service({"status": "OK", "result": {"formatted_address": "Somewhere"}})
        with pytest.raises(UpstreamServiceError, match="Place has no coordinates"):
            await service.place_details("abc")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        def handler(request):
            return httpx.Response(500, text="<html>oops</html>")

        service = MapsService(transport=httpx.MockTransport(handler))
        with pytest.raises(UpstreamServiceError):
            await service.place_details("abc")
