"""
EcoPlate Backend — Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Values come from environment variables (or a .env file), are
       type-coerced and range-checked, and are exposed through the
       module-level `settings` singleton.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at import time; production checks run in the lifespan.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Development-only signing key. Production startup refuses to run with it.
DEFAULT_JWT_SECRET = "ecoplate-dev-secret-change-me"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults. Production deployments must
    override JWT_SECRET and should set GEMINI_API_KEY / GOOGLE_MAPS_API_KEY.
    """

    # ── Environment ───────────────────────────────────────────────────────
    environment: str = Field(default="development")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid = {"development", "production", "test"}
        lower = v.lower()
        if lower not in valid:
            raise ValueError(f"Invalid environment '{v}'. Must be one of: {valid}")
        return lower

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    # ── Database ──────────────────────────────────────────────────────────
    # Format: sqlite+aiosqlite:///path.db  or  postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ecoplate.db",
        description="Async SQLAlchemy connection URL",
    )

    # Pool sizing only applies to server databases (ignored for SQLite)
    db_pool_size: int = Field(default=20, ge=5, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    # ── Authentication ────────────────────────────────────────────────────
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_days: int = Field(default=7, ge=1, le=90)

    # ── Google Gemini (ingredient / waste recognition) ────────────────────
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key for photo-based ingredient recognition",
    )
    gemini_model: str = Field(default="gemini-1.5-flash")

    # ── Google Maps (Places proxy) ────────────────────────────────────────
    google_maps_api_key: str = Field(default="")
    maps_base_url: str = Field(default="https://maps.googleapis.com/maps/api/place")
    maps_timeout: float = Field(default=10.0, gt=0, le=60)

    # ── Uploads ───────────────────────────────────────────────────────────
    upload_root: str = Field(default="./uploads")

    # 5MB = 5 * 1024 * 1024
    max_image_size: int = Field(default=5_242_880, ge=1_048_576, le=52_428_800)
    max_images_per_request: int = Field(default=5, ge=1, le=20)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Comma-separated list of origins
    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=3000, ge=1024, le=65535)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Retry Configuration (Gemini calls) ────────────────────────────────
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: int = Field(default=2, ge=1, le=30)
    retry_max_wait: int = Field(default=10, ge=5, le=120)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    # After N consecutive failures, stop calling Gemini for M seconds
    cb_failure_threshold: int = Field(default=5, ge=2, le=20)
    cb_recovery_timeout: int = Field(default=60, ge=10, le=300)

    # ── Rate Limiting ─────────────────────────────────────────────────────
    rate_limit_requests: int = Field(default=600, ge=10, le=100000)
    rate_limit_window: int = Field(default=600, ge=60, le=86400)  # seconds

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> List[str]:
        """
        Validates that critical settings are configured.

        Returns a list of non-fatal warnings (missing optional integrations).
        Raises ValueError when a required production setting is missing.
        """
        errors = []
        warnings = []

        if self.is_production and (not self.jwt_secret or self.jwt_secret == DEFAULT_JWT_SECRET):
            errors.append("JWT_SECRET must be set to a unique value in production.")

        if not self.gemini_api_key:
            warnings.append(
                "GEMINI_API_KEY is not set; ingredient and waste recognition are disabled."
            )
        if not self.google_maps_api_key:
            warnings.append(
                "GOOGLE_MAPS_API_KEY is not set; address autocomplete is disabled."
            )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )
        return warnings


settings = Settings()
