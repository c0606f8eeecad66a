"""
EcoPlate Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for each error scenario.
How:   Every exception carries a user-safe message and an optional context
       dict. Global handlers registered in main.py map each class to an
       HTTP status and a structured JSON body.
Who:   Raised by services, dependencies and middleware.

Exception Hierarchy:
    EcoPlateError (base)
    ├── ValidationError          → 400 Bad Request
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    ├── ConfigurationError       → 500 Internal Server Error
    ├── UpstreamServiceError     → 502 Bad Gateway
    ├── LLMServiceError          → 503 Service Unavailable
    └── CircuitBreakerOpenError  → 503 Service Unavailable
"""

from typing import Any, Dict, Optional


class EcoPlateError(Exception):
    """
    Base exception for all EcoPlate application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info; only some handlers return it as `details`
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(EcoPlateError):
    """
    Raised when client input fails a business rule.

    Request-body schema failures are converted to the same 400 shape by the
    RequestValidationError handler in main.py.
    """

    status_code = 400
    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(EcoPlateError):
    """Missing, malformed, expired or otherwise invalid credentials."""

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(EcoPlateError):
    """The caller is authenticated but does not own the resource."""

    status_code = 403
    error_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(EcoPlateError):
    """
    Raised when a requested resource does not exist (or is not visible to
    the caller; other users' products are reported as missing, not forbidden).
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class ConflictError(EcoPlateError):
    """A uniqueness rule was violated (e.g. email already registered)."""

    status_code = 409
    error_code = "conflict"

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(EcoPlateError):
    """Could not read, write, or delete a file on the upload volume."""

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(EcoPlateError):
    """
    An optional integration was called without its credentials.

    Example: "Google Maps API key not configured".
    """

    status_code = 500
    error_code = "configuration_error"

    def __init__(
        self,
        message: str = "Service is not configured",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamServiceError(EcoPlateError):
    """
    A third-party HTTP API (Google Maps) returned an error or was unreachable.

    HTTP: 502 Bad Gateway; `message` carries the upstream error text when
    the upstream provided one.
    """

    status_code = 502
    error_code = "upstream_error"

    def __init__(
        self,
        message: str = "Upstream service error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LLMServiceError(EcoPlateError):
    """
    Raised when the vision model (Gemini) fails after all retries, or
    returns something that cannot be parsed as the expected JSON.
    """

    status_code = 503
    error_code = "llm_service_error"

    def __init__(
        self,
        message: str = "Food recognition service is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(EcoPlateError):
    """
    Raised when the circuit breaker is in OPEN state.

        CLOSED → (threshold consecutive failures) → OPEN
        OPEN   → (recovery timeout elapsed)       → HALF_OPEN
        HALF_OPEN → success → CLOSED | failure → OPEN
    """

    status_code = 503
    error_code = "service_unavailable"

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Food recognition is temporarily unavailable due to repeated failures. "
            f"Please try again in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(EcoPlateError):
    """
    Raised when database operations fail unexpectedly.

    The message returned to the client is always generic; SQL details are
    logged server-side only.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(EcoPlateError):
    """Client exceeded the per-IP request rate limit."""

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
