"""
EcoPlate Backend — Google Gemini Vision Service
================================================

What:  VisionService implementation on the Google Gemini API. Identifies
       fridge ingredients in a cooking photo and estimates leftovers in a
       plate photo.
How:   Sends the prompt plus the inline image bytes with
       response_mime_type="application/json", then decodes the JSON reply.
Who:   Module singleton `gemini_service`, used by the consumption routes and
       the health endpoint.

Resilience:
    1. Tenacity retry with exponential backoff + jitter around the API call
    2. Circuit breaker shared by all requests of the process
    3. JSON decoding happens outside the retry: a malformed reply is an
       LLMServiceError straight away
"""

import base64
import binascii
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
    RetryError,
)

from ecoplate.config import settings
from ecoplate.exceptions import (
    CircuitBreakerOpenError,
    ConfigurationError,
    LLMServiceError,
    ValidationError,
)
from ecoplate.services.llm_base import VisionService

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_MIME = "image/jpeg"

# Worth another attempt; anything else (bad key, rejected request) fails at once
TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.ResourceExhausted,
    google_exceptions.ServiceUnavailable,
)


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    CLOSED → (failure_threshold consecutive failures) → OPEN
    OPEN   → (recovery_timeout seconds)               → HALF_OPEN
    HALF_OPEN → success → CLOSED, failure → OPEN

    Not shared between worker processes.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and the recovery timeout has
            not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info("Circuit breaker transitioning to HALF_OPEN after %.1fs", elapsed)
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker transitioning to CLOSED (service recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Image helpers
# ══════════════════════════════════════════════════════════════════════════

def decode_image_base64(image_base64: str) -> Tuple[bytes, str]:
    """
    Decode a bare base64 string or a data URL into (bytes, mime_type).

    "data:image/png;base64,iVBOR..." → (b"\\x89PNG...", "image/png")
    "/9j/4AAQ..."                     → (b"\\xff\\xd8...", "image/jpeg")
    """
    mime_type = DEFAULT_IMAGE_MIME
    payload = image_base64.strip()

    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        declared = header[len("data:"):].split(";", 1)[0]
        if declared:
            mime_type = declared

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(message="Invalid image data", field="image_base64")

    if not data:
        raise ValidationError(message="Image is required", field="image_base64")
    return data, mime_type


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ══════════════════════════════════════════════════════════════════════════
# Gemini Service
# ══════════════════════════════════════════════════════════════════════════

class GeminiVisionService(VisionService):
    """
    Gemini-backed food recognition.

    Error chain:
        API call fails → tenacity retries → all retries fail
        → circuit breaker failure → LLMServiceError (503)
    """

    IDENTIFY_PROMPT = """You are a food identification assistant. Analyze this image of raw \
ingredients being prepared for cooking. Identify them and match them to the user's fridge \
inventory below.

Fridge inventory:
{fridge}

For each visible ingredient, match it to the closest fridge item by product id. Estimate the \
quantity being used (as a fraction of the fridge item's total quantity). Rate your confidence \
as "high", "medium", or "low".

Return JSON with this structure:
{{
  "ingredients": [
    {{
      "product_id": <number, matched fridge product id>,
      "name": "<ingredient name as seen>",
      "matched_product_name": "<fridge product name>",
      "estimated_quantity": <number>,
      "category": "<food category>",
      "unit_price": <number, from fridge data>,
      "co2_emission": <number, from fridge data>,
      "confidence": "high" | "medium" | "low"
    }}
  ]
}}

If an ingredient is not in the fridge, omit product_id and estimate the other fields."""

    WASTE_PROMPT = """Analyze this image of food waste or leftovers after a meal. The following \
ingredients were used in cooking:

{ingredients}

For each ingredient that appears as waste in the image, estimate the quantity wasted (in the \
same units as quantity_used). If an ingredient has no visible waste, do not include it.

Return JSON:
{{
  "waste_items": [
    {{
      "product_id": <number from the ingredient list>,
      "product_name": "<ingredient name>",
      "quantity_wasted": <number>
    }}
  ],
  "overall_observation": "<brief description of waste level>"
}}"""

    def __init__(self):
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        logger.info(
            "GeminiVisionService initialized with model=%s, "
            "circuit_breaker(threshold=%d, recovery=%ds)",
            settings.gemini_model,
            settings.cb_failure_threshold,
            settings.cb_recovery_timeout,
        )

    # ── Public API ────────────────────────────────────────────────────────

    async def identify_ingredients(
        self,
        image_base64: str,
        fridge_items: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        prompt = self.IDENTIFY_PROMPT.format(fridge=json.dumps(fridge_items, indent=2))
        payload = await self._generate_json(prompt, image_base64, operation="identify")

        raw_items = payload.get("ingredients") if isinstance(payload, dict) else None
        if not isinstance(raw_items, list):
            return []

        ingredients = []
        for item in raw_items:
            if not isinstance(item, dict):
                continue
            confidence = str(item.get("confidence", "low")).lower()
            ingredients.append({
                "product_id": _to_int(item.get("product_id")),
                "name": str(item.get("name", "")),
                "matched_product_name": str(item.get("matched_product_name", "")),
                "estimated_quantity": _to_float(item.get("estimated_quantity")),
                "category": str(item.get("category", "other")),
                "unit_price": _to_float(item.get("unit_price")),
                "co2_emission": _to_float(item.get("co2_emission")),
                "confidence": confidence if confidence in ("high", "medium", "low") else "low",
            })
        return ingredients

    async def analyze_waste(
        self,
        image_base64: str,
        ingredients: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        prompt = self.WASTE_PROMPT.format(ingredients=json.dumps(ingredients, indent=2))
        payload = await self._generate_json(prompt, image_base64, operation="analyze_waste")

        if not isinstance(payload, dict):
            payload = {}
        raw_items = payload.get("waste_items")
        waste_items = []
        for item in raw_items if isinstance(raw_items, list) else []:
            if not isinstance(item, dict):
                continue
            waste_items.append({
                "product_id": _to_int(item.get("product_id")),
                "product_name": str(item.get("product_name", "")),
                "quantity_wasted": max(0.0, _to_float(item.get("quantity_wasted"))),
            })
        return {
            "waste_items": waste_items,
            "overall_observation": str(payload.get("overall_observation") or "Unable to analyze"),
        }

    async def health_check(self) -> bool:
        if not settings.gemini_api_key:
            return False
        try:
            models = genai.list_models()
            target = f"models/{settings.gemini_model}"
            if target not in [m.name for m in models]:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False

    # ── Internals ─────────────────────────────────────────────────────────

    async def _generate_json(self, prompt: str, image_base64: str, operation: str) -> Any:
        """Circuit breaker → retried API call → JSON decode."""
        if not settings.gemini_api_key:
            raise ConfigurationError(message="Gemini API key not configured")

        image_bytes, mime_type = decode_image_base64(image_base64)
        request_id = str(uuid.uuid4())[:8]

        self.circuit_breaker.can_execute()
        logger.info(
            "[%s] Gemini %s request (%d bytes, %s)",
            request_id,
            operation,
            len(image_bytes),
            mime_type,
        )

        try:
            text = await self._call_gemini_with_retry(prompt, image_bytes, mime_type, request_id)
            self.circuit_breaker.record_success()
        except CircuitBreakerOpenError:
            raise
        except RetryError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] All Gemini retries exhausted: %s",
                request_id,
                str(e.last_attempt.exception()) if e.last_attempt else "Unknown error",
            )
            raise LLMServiceError(
                message="Food recognition failed after multiple attempts. Please try again later.",
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"request_id": request_id, "attempts": settings.retry_max_attempts},
            )
        except Exception as e:
            self.circuit_breaker.record_failure()
            logger.error("[%s] Unexpected Gemini error: %s", request_id, str(e), exc_info=True)
            raise LLMServiceError(
                message="An unexpected error occurred during food recognition.",
                context={"request_id": request_id, "error_type": type(e).__name__},
            )

        try:
            return json.loads(text) if text else {}
        except json.JSONDecodeError:
            logger.error("[%s] Gemini returned non-JSON output (%d chars)", request_id, len(text))
            raise LLMServiceError(
                message="Food recognition returned an invalid response.",
                context={"request_id": request_id, "operation": operation},
            )

    @retry(
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    async def _call_gemini_with_retry(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str,
        request_id: str,
    ) -> str:
        start_time = time.time()
        try:
            response = await self.model.generate_content_async(
                [prompt, {"mime_type": mime_type, "data": image_bytes}],
                generation_config={"response_mime_type": "application/json"},
                request_options={"timeout": 60},
            )
        except Exception as e:
            logger.warning(
                "[%s] Gemini API call failed after %.0fms: %s",
                request_id,
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise

        text = response.text.strip() if response.text else ""
        logger.info(
            "[%s] Gemini call completed in %.0fms, %d chars",
            request_id,
            (time.time() - start_time) * 1000,
            len(text),
        )
        return text


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state shared by every request
gemini_service = GeminiVisionService()
