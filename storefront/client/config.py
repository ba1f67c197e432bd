"""Checkout client configuration.

Loads settings from STOREFRONT_-prefixed environment variables.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Settings for a checkout client session."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = "http://localhost:8000"
    api_token: str | None = None
    storage_dir: Path = Path(".storefront/session")
    request_timeout: float = 10.0
