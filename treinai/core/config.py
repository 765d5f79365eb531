"""
treinai/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, JWT secret, OpenAI, Stripe, uploads)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="treinai",
        description="MongoDB database name"
    )
    MONGODB_USE_TRANSACTIONS: bool = Field(
        default=True,
        description="Run coach reassignment inside a transaction (needs a replica set)"
    )

    # Authentication
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Secret used to sign JWT access tokens"
    )
    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    JWT_EXPIRES_DAYS: int = Field(
        default=7,
        description="Access token lifetime in days"
    )

    # OpenAI
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="OpenAI API key for workout and nutrition generation"
    )
    OPENAI_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Chat completion model"
    )
    OPENAI_TIMEOUT: int = Field(
        default=60,
        description="OpenAI request timeout in seconds"
    )

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = Field(
        default=None,
        description="Stripe secret API key"
    )
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Stripe webhook signing secret"
    )
    STRIPE_PRICE_PRO: Optional[str] = None
    STRIPE_PRICE_MAX: Optional[str] = None
    STRIPE_PRICE_COACH: Optional[str] = None
    STRIPE_PRICE_LOCAL: Optional[str] = Field(
        default=None,
        description="Recurring price used for venue listings"
    )
    IMPRESSIONS_PER_BRL: int = Field(
        default=175,
        description="Ad impressions credited per BRL paid"
    )

    # Public URLs
    FRONTEND_URL: str = Field(
        default="http://localhost:5173",
        description="Frontend base URL (checkout redirects)"
    )
    PUBLIC_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL of this API (upload links)"
    )

    # Uploads
    UPLOAD_DIR: str = Field(
        default="uploads",
        description="Directory where uploaded files are stored"
    )
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
    MAX_AD_IMAGE_BYTES: int = 1 * 1024 * 1024
    MAX_AD_VIDEO_BYTES: int = 50 * 1024 * 1024
    MAX_ADS_PER_USER: int = 5

    # Localization
    APP_TIMEZONE: str = Field(
        default="America/Sao_Paulo",
        description="Timezone used for per-day aggregation"
    )

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_AUTH: str = Field(
        default="5/15minutes",
        description="Login/signup attempts per client"
    )
    RATE_LIMIT_AI: str = Field(
        default="20/minute",
        description="AI generation requests per client"
    )
    RATE_LIMIT_UPLOAD: str = Field(
        default="10/5minutes",
        description="Multipart upload requests per client"
    )
    RATE_LIMIT_DEFAULT: str = "60/minute"

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str, info: ValidationInfo) -> str:
        """Ensure secret key is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    def price_for_plan(self, plan: str) -> Optional[str]:
        """Stripe price id configured for a paid plan."""
        return {
            "pro": self.STRIPE_PRICE_PRO,
            "max": self.STRIPE_PRICE_MAX,
            "coach": self.STRIPE_PRICE_COACH,
        }.get(plan)

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.OPENAI_API_KEY:
            errors.append("OPENAI_API_KEY is required in production")
        if not settings.STRIPE_SECRET_KEY:
            errors.append("STRIPE_SECRET_KEY is required in production")
        if not settings.STRIPE_WEBHOOK_SECRET:
            errors.append("STRIPE_WEBHOOK_SECRET is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
