"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False
    currency: str = "AED"

    # Storefront frontend (gateway return URLs point here)
    frontend_url: str = "http://localhost:3000"

    # Authentication (dev customer seeded into the session registry)
    dev_customer_token: str = "dev-customer-token-change-in-production"
    dev_customer_id: str = "customer-dev"
    dev_customer_email: str = "dev@storefront.local"
    dev_customer_name: str = "Dev Customer"

    # Payment gateway
    gateway_base_url: str = "https://api-v2.ziina.com/api"
    gateway_api_key: str = "dev-gateway-key-change-in-production"
    gateway_test_mode: bool = True
    gateway_timeout: float = 10.0
    gateway_min_amount_cents: int = 200

    # Webhooks
    webhook_secret: str = "dev-webhook-secret-change-in-production"

    # Idempotency
    idempotency_ttl_hours: int = 24

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
