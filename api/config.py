"""API configuration from environment variables."""

from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage
    DATABASE_URL: str = "postgresql+asyncpg://storefront:storefront@db:5432/storefront"
    DB_ECHO: bool = False
    REDIS_URL: str = "redis://redis:6379/0"

    # Storefront
    FRONTEND_URL: str = "http://localhost:3000"
    CURRENCY: str = "usd"
    CHECKOUT_SESSION_TTL_HOURS: int = 24
    CHECKOUT_SWEEP_INTERVAL_SEC: int = 900  # 0 disables the background sweep
    DEFAULT_PLATFORM_FEE_PERCENT: Decimal = Decimal("15.00")
    CORS_ORIGINS: list[str] = ["*"]

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CONNECT_WEBHOOK_SECRET: str = ""
    STRIPE_CONNECT_COUNTRY: str = "US"
    WEBHOOK_DEDUPE_TTL_SEC: int = 86400

    # PayPal
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_CLIENT_SECRET: str = ""
    PAYPAL_MODE: str = "sandbox"
    PAYPAL_BRAND_NAME: str = "Storefront"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
