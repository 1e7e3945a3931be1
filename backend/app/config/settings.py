"""
Application Settings for HaircutFun

Centralized configuration using Pydantic Settings with .env support.
All environment variables are validated at startup.
"""

from functools import lru_cache
from typing import Optional
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Stripe price IDs decide which plans are purchasable. A plan whose
    price ID is empty cannot be checked out.
    """

    # Supabase Configuration
    supabase_url: str
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: str
    supabase_jwt_secret: Optional[str] = None

    # Stripe Configuration
    stripe_secret_key: str = ""
    stripe_publishable_key: Optional[str] = None
    stripe_webhook_secret: str = ""
    stripe_pro_price_id: str = ""
    stripe_premium_price_id: str = ""

    # Google AI Configuration (accepts GOOGLE_API_KEY or GEMINI_API_KEY)
    google_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_image_model: str = "gemini-2.5-flash-image-preview"

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS / redirects
    site_url: str = "http://localhost:3000"
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Generation retry (server-side errors only)
    generation_max_attempts: int = 3
    generation_retry_base_delay: float = 2.0

    # Subscription status lookups
    subscription_cache_ttl_seconds: int = 300
    subscription_query_timeout_seconds: float = 8.0

    # Gallery
    max_saved_images: int = 10

    # Database Configuration (SQLModel/SQLAlchemy)
    supabase_password: Optional[str] = None
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def normalize_api_keys(self) -> "Settings":
        """Normalize gemini_api_key to google_api_key."""
        if not self.google_api_key and self.gemini_api_key:
            self.google_api_key = self.gemini_api_key

        if self.generation_max_attempts < 1:
            raise ValueError("GENERATION_MAX_ATTEMPTS must be at least 1")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
