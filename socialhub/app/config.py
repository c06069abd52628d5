"""
Configuration module for the SocialHub realtime gateway.

This module uses Pydantic Settings to load and validate environment variables
for the database connection, session JWT verification, internal service
authentication, realtime room policy and CORS settings.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field carries a development default so the service boots with an
    empty environment; production deployments override secrets and the
    database URL.
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================

    APP_NAME: str = Field(
        default="socialhub",
        description="Service name reported by /health and in logs",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the server",
    )

    PORT: int = Field(
        default=3001,
        description="Port to bind the server",
        ge=1,
        le=65535,
    )

    ALLOWED_ORIGINS: Optional[str] = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./socialhub.db",
        description="SQLAlchemy async database URL",
        min_length=1,
    )

    DATABASE_ECHO: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # =========================================================================
    # Session JWT Configuration
    # =========================================================================

    SESSION_JWT_SECRET: str = Field(
        default="dev-only-session-secret-change-me-0000",
        description="Secret key for verifying session JWTs",
        min_length=32,
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    SESSION_JWT_EXPIRY_MINUTES: int = Field(
        default=60,
        description="Session JWT expiry time in minutes",
        ge=5,
        le=1440,  # Max 24 hours
    )

    JWT_ISSUER: str = Field(
        default="socialhub",
        description="Expected 'iss' claim of session JWTs",
    )

    # =========================================================================
    # Internal Service Authentication
    # =========================================================================

    INTERNAL_SHARED_SECRET: Optional[str] = Field(
        None,
        description="Shared secret for post/friend services publishing notifications",
        min_length=32,
    )

    # =========================================================================
    # Realtime Configuration
    # =========================================================================

    CONVERSATION_KEY_SEPARATOR: str = Field(
        default="_",
        description="Separator joining participant ids into a conversation key",
        min_length=1,
    )

    ROOM_JOIN_REQUIRES_PARTICIPANT: bool = Field(
        default=False,
        description="Only let a connection join conversation rooms it participates in",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """
        Validate JWT algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    @field_validator("CONVERSATION_KEY_SEPARATOR")
    @classmethod
    def validate_separator(cls, v: str) -> str:
        if v.strip() != v:
            raise ValueError("CONVERSATION_KEY_SEPARATOR must not contain surrounding whitespace")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle. Tests call ``get_settings.cache_clear()``
    after changing the environment.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()


def validate_configuration(settings: Settings) -> Dict[str, Any]:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup; errors and warnings are logged.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    if settings.SESSION_JWT_SECRET == Settings.model_fields["SESSION_JWT_SECRET"].default:
        warnings.append("SESSION_JWT_SECRET is the development default")

    if not settings.INTERNAL_SHARED_SECRET:
        warnings.append("INTERNAL_SHARED_SECRET is not set (internal notification publishing disabled)")

    if settings.is_sqlite and ":memory:" in settings.DATABASE_URL:
        warnings.append("DATABASE_URL points to an in-memory database (data is lost on restart)")

    if not settings.allowed_origins_list:
        warnings.append("No CORS origins configured")

    if not settings.DATABASE_URL.split(":", 1)[0]:
        errors.append("DATABASE_URL has no driver scheme")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "room_join_requires_participant": settings.ROOM_JOIN_REQUIRES_PARTICIPANT,
        "jwt_expiry_minutes": settings.SESSION_JWT_EXPIRY_MINUTES,
    }
