# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Third-party integrations (OpenAI, Paystack, OneSignal) are optional so the
    API can boot in development without them; the `*_enabled` properties tell
    services whether the integration is configured.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # Required - all persistence goes through Supabase

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker and result backend"
    )

    # -------------------------------------------------------------------------
    # Clerk Authentication
    # -------------------------------------------------------------------------

    CLERK_ISSUER: str = Field(
        default="https://clerk.memospark.live",
        description="Clerk frontend API URL, used as the expected token issuer"
    )

    CLERK_JWKS_URL: str = Field(
        default="",
        description="JWKS endpoint (defaults to {CLERK_ISSUER}/.well-known/jwks.json)"
    )

    CLERK_AUDIENCE: str = Field(
        default="",
        description="Expected 'aud' claim. Leave empty to skip audience checks"
    )

    # -------------------------------------------------------------------------
    # OpenAI Configuration
    # -------------------------------------------------------------------------
    # Optional - AI suggestions fall back to rule-based output without it

    OPENAI_API_KEY: str = Field(
        default="",
        description="OpenAI API key used to personalise premium suggestions"
    )

    OPENAI_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Model for suggestion enrichment (must support JSON mode)"
    )

    AI_TEMPERATURE: float = Field(
        default=0.4,
        ge=0.0,
        le=2.0,
        description="OpenAI temperature for suggestion enrichment"
    )

    # -------------------------------------------------------------------------
    # Paystack Billing
    # -------------------------------------------------------------------------

    PAYSTACK_SECRET_KEY: str = Field(
        default="",
        description="Paystack secret key (also signs webhooks)"
    )

    PAYSTACK_BASE_URL: str = Field(
        default="https://api.paystack.co",
        description="Paystack REST API base URL"
    )

    PAYSTACK_CALLBACK_URL: str = Field(
        default="http://localhost:3000/billing/callback",
        description="Where Paystack redirects the user after checkout"
    )

    BILLING_CURRENCY: str = Field(
        default="GHS",
        description="ISO currency code for all charges"
    )

    # -------------------------------------------------------------------------
    # OneSignal Push Notifications
    # -------------------------------------------------------------------------

    ONESIGNAL_APP_ID: str = Field(
        default="",
        description="OneSignal application ID"
    )

    ONESIGNAL_REST_API_KEY: str = Field(
        default="",
        description="OneSignal REST API key"
    )

    ONESIGNAL_API_URL: str = Field(
        default="https://onesignal.com/api/v1",
        description="OneSignal REST API base URL"
    )

    NOTIFICATION_DEFAULT_HEADING: str = Field(
        default="MemoSpark",
        description="Heading used when a notification doesn't set one"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://memospark.live" -> ["http://localhost:3000", "https://memospark.live"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def clerk_jwks_url(self) -> str:
        """JWKS endpoint for verifying Clerk session tokens."""
        if self.CLERK_JWKS_URL:
            return self.CLERK_JWKS_URL
        return f"{self.CLERK_ISSUER.rstrip('/')}/.well-known/jwks.json"

    @property
    def openai_enabled(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @property
    def paystack_enabled(self) -> bool:
        return bool(self.PAYSTACK_SECRET_KEY)

    @property
    def onesignal_enabled(self) -> bool:
        return bool(self.ONESIGNAL_APP_ID and self.ONESIGNAL_REST_API_KEY)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
