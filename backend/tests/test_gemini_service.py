"""
EcoPlate Backend — Gemini Vision Service Unit Tests (Mocked)
=============================================================

The google-generativeai SDK is patched out; no network calls are made.
Retry tests swap tenacity's backoff for wait_none() so they run instantly.
"""

import base64
import json
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.api_core import exceptions as google_exceptions
from tenacity import wait_none

from ecoplate.config import settings
from ecoplate.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    LLMServiceError,
    ValidationError,
)
from ecoplate.services.gemini_service import (
    CircuitBreaker,
    GeminiVisionService,
    decode_image_base64,
)


def _mock_model(payload) -> MagicMock:
    response = MagicMock()
    response.text = payload if isinstance(payload, str) else json.dumps(payload)
    model = MagicMock()
    model.generate_content_async = AsyncMock(return_value=response)
    return model


def _service(model: MagicMock) -> GeminiVisionService:
    with patch("ecoplate.services.gemini_service.genai"):
        service = GeminiVisionService()
    service.model = model
    return service


class TestCircuitBreaker:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.can_execute() is True

    def test_opens_at_threshold_and_rejects(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert exc_info.value.status_code == 503

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)

        assert cb.can_execute() is True
        assert cb.state == CircuitBreaker.HALF_OPEN

    def test_failure_in_half_open_reopens(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=0)
        for _ in range(3):
            cb.record_failure()
        cb.can_execute()

        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

    def test_success_closes_and_resets(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()

        cb.record_success()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0


class TestDecodeImage:

    def test_bare_base64_defaults_to_jpeg(self, sample_image_bytes):
        data, mime = decode_image_base64(base64.b64encode(sample_image_bytes).decode())
        assert data == sample_image_bytes
        assert mime == "image/jpeg"

    def test_data_url_mime_is_used(self):
        encoded = base64.b64encode(b"\x89PNG\r\n\x1a\n").decode()
        data, mime = decode_image_base64(f"data:image/png;base64,{encoded}")
        assert data.startswith(b"\x89PNG")
        assert mime == "image/png"

    def test_garbage_rejected(self):
        with pytest.raises(ValidationError, match="Invalid image data"):
            decode_image_base64("not base64 at all!!")

    def test_empty_payload_rejected(self):
        with pytest.raises(ValidationError, match="Image is required"):
            decode_image_base64("data:image/png;base64,")


class TestGeminiVisionServiceMocked:

    def setup_method(self):
        self.fridge = [{"product_id": 7, "product_name": "Spinach", "quantity": 2}]

    @pytest.mark.asyncio
    async def test_identify_ingredients_normalizes_reply(self, sample_image_bytes):
        model = _mock_model({
            "ingredients": [
                {
                    "product_id": "7",
                    "name": "spinach leaves",
                    "matched_product_name": "Spinach",
                    "estimated_quantity": "0.5",
                    "category": "produce",
                    "unit_price": 3,
                    "co2_emission": 0.2,
                    "confidence": "HIGH",
                },
                {"name": "mystery", "confidence": "certain"},
                "not a dict",
            ]
        })
        service = _service(model)

        result = await service.identify_ingredients(
            base64.b64encode(sample_image_bytes).decode(), self.fridge
        )

        assert len(result) == 2
        assert result[0]["product_id"] == 7
        assert result[0]["estimated_quantity"] == 0.5
        assert result[0]["confidence"] == "high"
        assert result[1]["product_id"] is None
        assert result[1]["confidence"] == "low"

        args, kwargs = model.generate_content_async.call_args
        prompt, image_part = args[0]
        assert "Spinach" in prompt
        assert image_part == {"mime_type": "image/jpeg", "data": sample_image_bytes}
        assert kwargs["generation_config"] == {"response_mime_type": "application/json"}

    @pytest.mark.asyncio
    async def test_analyze_waste_clamps_negative_quantities(self, sample_image_bytes):
        model = _mock_model({
            "waste_items": [
                {"product_id": 7, "product_name": "Spinach", "quantity_wasted": -1},
                {"product_id": 8, "product_name": "Rice", "quantity_wasted": 0.25},
            ],
            "overall_observation": "Some rice left",
        })
        service = _service(model)

        result = await service.analyze_waste(base64.b64encode(sample_image_bytes).decode(), [])

        assert [w["quantity_wasted"] for w in result["waste_items"]] == [0.0, 0.25]
        assert result["overall_observation"] == "Some rice left"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_llm_error(self, sample_image_bytes):
        service = _service(_mock_model("this is not json"))

        with pytest.raises(LLMServiceError, match="invalid response"):
            await service.identify_ingredients(base64.b64encode(sample_image_bytes).decode(), [])
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_missing_key_raises_configuration_error(self, sample_image_bytes):
        service = _service(_mock_model({}))

        with patch.object(settings, "gemini_api_key", ""):
            with pytest.raises(ConfigurationError, match="Gemini API key not configured"):
                await service.analyze_waste(base64.b64encode(sample_image_bytes).decode(), [])
        service.model.generate_content_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits(self, sample_image_bytes):
        model = _mock_model({})
        service = _service(model)
        for _ in range(service.circuit_breaker.failure_threshold):
            service.circuit_breaker.record_failure()

        with pytest.raises(CircuitBreakerOpenError):
            await service.identify_ingredients(base64.b64encode(sample_image_bytes).decode(), [])
        model.generate_content_async.assert_not_called()

    @pytest.mark.asyncio
    async def test_health_check_without_key_is_false(self):
        service = _service(_mock_model({}))
        with patch.object(settings, "gemini_api_key", ""):
            assert await service.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_lists_models(self):
        service = _service(_mock_model({}))
        with patch("ecoplate.services.gemini_service.genai") as mock_genai:
            mock_genai.list_models.return_value = []
            assert await service.health_check() is True


class TestGeminiRetries:

    def setup_method(self):
        self.no_backoff = patch.object(GeminiVisionService._call_gemini_with_retry.retry, "wait", wait_none())
        self.no_backoff.start()

    def teardown_method(self):
        self.no_backoff.stop()

    @pytest.mark.asyncio
    async def test_exhausted_retries_report_retry_after(self, sample_image_bytes):
        model = _mock_model({})
        model.generate_content_async = AsyncMock(side_effect=ConnectionError("connection reset"))
        service = _service(model)

        with pytest.raises(LLMServiceError, match="multiple attempts") as exc_info:
            await service.identify_ingredients(base64.b64encode(sample_image_bytes).decode(), [])

        assert model.generate_content_async.await_count == settings.retry_max_attempts
        assert exc_info.value.retry_after == service.circuit_breaker.recovery_timeout
        assert exc_info.value.context["attempts"] == settings.retry_max_attempts
        assert service.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, sample_image_bytes):
        model = _mock_model({"waste_items": [], "overall_observation": "Clean plate"})
        reply = model.generate_content_async.return_value
        model.generate_content_async = AsyncMock(
            side_effect=[google_exceptions.ServiceUnavailable("busy"), reply]
        )
        service = _service(model)

        result = await service.analyze_waste(base64.b64encode(sample_image_bytes).decode(), [])

        assert result["overall_observation"] == "Clean plate"
        assert model.generate_content_async.await_count == 2
        assert service.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        google_exceptions.PermissionDenied("API key not valid"),
        google_exceptions.InvalidArgument("Unsupported image"),
        ValueError("unexpected payload"),
    ])
    async def test_non_transient_errors_are_not_retried(self, sample_image_bytes, error):
        model = _mock_model({})
        model.generate_content_async = AsyncMock(side_effect=error)
        service = _service(model)

        with pytest.raises(LLMServiceError, match="unexpected error") as exc_info:
            await service.identify_ingredients(base64.b64encode(sample_image_bytes).decode(), [])

        assert model.generate_content_async.await_count == 1
        assert exc_info.value.retry_after is None
        assert service.circuit_breaker.failure_count == 1
