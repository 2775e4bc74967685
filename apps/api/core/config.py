"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. sqlite for local runs and tests).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="bodycount")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # JWT Authentication - REQUIRED for token signing
    # Must be set via environment variable, never use default in production
    SECRET_KEY: str = Field(
        default=...,  # Required - no default
        description="JWT signing key. Must be cryptographically secure (32+ chars). "
                    "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=7 * 24 * 60, ge=5)

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    EXPOSE_API_DOCS: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # AI insights (OpenAI chat completions)
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    INSIGHTS_MODEL: str = Field(default="gpt-4o-mini")
    INSIGHTS_MAX_OUTPUT_TOKENS: int = Field(default=2000, ge=100)
    INSIGHTS_TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0)
    INSIGHTS_PROVIDER_TIMEOUT_S: float = Field(default=60.0, gt=0)
    INSIGHTS_LOCALE: str = Field(default="en")  # en or fr
    INSIGHTS_CONTEXT_LIMIT: int = Field(default=5, ge=1, le=5)

    # Credit ledger
    INSIGHT_PRICE_CREDITS: int = Field(default=10, ge=1)
    DAILY_BONUS_CREDITS: int = Field(default=5, ge=1)
    SIGNUP_CREDITS: int = Field(default=30, ge=0)
    # The daily bonus rolls over at midnight in this zone (never the client's).
    SERVER_TIMEZONE: str = Field(default="UTC")

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # Web app base URL (checkout redirects back to the UI).
    WEB_APP_BASE_URL: str = Field(default="http://localhost:3000")

    # Stripe (hosted checkout for credit packs)
    STRIPE_SECRET_KEY: Optional[str] = Field(default=None)
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(default=None)
    STRIPE_PRICE_PACK_50: Optional[str] = Field(default=None)
    STRIPE_PRICE_PACK_150: Optional[str] = Field(default=None)
    STRIPE_PRICE_PACK_500: Optional[str] = Field(default=None)
    STRIPE_CHECKOUT_SUCCESS_URL: Optional[str] = Field(default=None)
    STRIPE_CHECKOUT_CANCEL_URL: Optional[str] = Field(default=None)

    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions


def validate_production_config(
    *,
    environment: str,
    debug: bool,
    cors_origins: Optional[str],
    missing_credentials: Optional[list[str]] = None,
) -> None:
    """
    Hard-fail on configuration that must never reach production.

    Outside production this is a no-op: missing credentials there only disable
    the affected routes (see core.features).
    """
    if (environment or "").lower() != "production":
        return

    if debug:
        raise ValueError("DEBUG must be False in production")

    if not (cors_origins or "").strip():
        raise ValueError("CORS_ORIGINS must be set in production")

    if missing_credentials:
        raise ValueError(
            f"Missing required credentials in production: {', '.join(sorted(missing_credentials))}"
        )


# Global settings instance
settings = Settings()
