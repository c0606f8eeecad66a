"""
EcoPlate Backend — FastAPI Application Factory
===============================================

What:  Builds the FastAPI application: middleware, exception handlers,
       routers and the startup/shutdown lifespan.
Who:   uvicorn (`uvicorn ecoplate.main:app`) and the test suite.

Application Architecture:
    ┌────────────────────────────────────────────────────────────┐
    │                       FastAPI App                          │
    │                                                            │
    │  Middleware:  RateLimit → RequestID → Logging → GZip → CORS │
    │                                                            │
    │  Routers:     auth · myfridge · consumption · gamification │
    │               dashboard · marketplace · conversations      │
    │               upload · maps · health                       │
    │                                                            │
    │  Handlers:    EcoPlateError → its status_code              │
    │               RequestValidationError → 400                 │
    │               Exception → 500                              │
    └────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → tables (non-production) →
              badge catalogue → upload directory
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from ecoplate import __version__
from ecoplate.config import settings
from ecoplate.database import async_session_factory, dispose_engine, init_models
from ecoplate.exceptions import (
    CircuitBreakerOpenError,
    DatabaseError,
    EcoPlateError,
    FileStorageError,
    LLMServiceError,
    RateLimitExceededError,
)
from ecoplate.middleware.logging import RequestLoggingMiddleware
from ecoplate.middleware.rate_limit import RateLimitMiddleware
from ecoplate.middleware.request_id import RequestIDMiddleware, request_id_var
from ecoplate.routes import (
    auth,
    consumption,
    conversations,
    dashboard,
    gamification,
    health,
    maps,
    marketplace,
    myfridge,
    upload,
)
from ecoplate.services.badge_service import badge_service
from ecoplate.services.image_upload_service import image_upload_service

logger = logging.getLogger(__name__)

# pydantic prefixes messages raised from field validators with this
PYDANTIC_VALUE_ERROR_PREFIX = "Value error, "


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Root logger to stdout in the `time [LEVEL] module: message` format."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-operation chatter from libraries; our access log covers requests
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("EcoPlate Backend %s starting up (%s)...", __version__, settings.environment)

    for warning in settings.validate_required_for_production():
        logger.warning("Configuration: %s", warning)

    if not settings.is_production:
        # Production schema is managed by `alembic upgrade head`
        await init_models()
        logger.info("Database tables ensured")

    async with async_session_factory() as session:
        badges = await badge_service.sync_badge_catalogue(session)
        await session.commit()
    logger.info("Badge catalogue synced (%d badges)", len(badges))

    image_upload_service.initialize_upload_dir()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("EcoPlate Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Every error leaves the API as
        {"error", "message", "details"?, "request_id"}

    EcoPlateError subclasses carry their own status_code/error_code. Context
    is returned as `details` only for 4xx errors; 5xx context is logged.
    """

    @app.exception_handler(EcoPlateError)
    async def handle_app_error(request: Request, exc: EcoPlateError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
            details = None
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
            details = exc.context
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        message = str(first.get("msg", "Invalid request"))
        if message.startswith(PYDANTIC_VALUE_ERROR_PREFIX):
            message = message[len(PYDANTIC_VALUE_ERROR_PREFIX):]

        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        logger.warning("[%s] Request validation failed: %s (%s)", request_id_var.get(""), message, field)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", message, {"field": field} if field else None),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, {"recovery_time": exc.recovery_time}),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(LLMServiceError)
    async def handle_llm_error(request: Request, exc: LLMServiceError):
        logger.error("[%s] LLM service error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers=headers,
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("[%s] File storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="EcoPlate API",
        description=(
            "Food-waste reduction backend: fridge tracking, photo-assisted meal logging, "
            "a surplus-food marketplace with messaging, and sustainability gamification."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(myfridge.router)
    app.include_router(consumption.router)
    app.include_router(gamification.router)
    app.include_router(dashboard.router)
    app.include_router(marketplace.router)
    app.include_router(conversations.router)
    app.include_router(conversations.messages_router)
    app.include_router(upload.router)
    app.include_router(upload.files_router)
    app.include_router(maps.router)
    app.include_router(health.router)

    return app


app = create_app()
