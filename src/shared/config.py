"""Application settings.

Loaded from environment variables (prefix ``STOREFRONT_``) and an optional
``.env`` file. Uses pydantic-settings for validation and env var overriding.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOREFRONT_", env_file=".env", extra="ignore")

    env: str = "development"

    # Databases
    catalogue_database_url: str = "sqlite:///catalogue.db"
    search_database_url: str = "sqlite:///search.db"
    search_timeout_seconds: float = 5.0

    # Catalogue writes
    catalogue_write_retries: int = Field(3, ge=1)

    # Propagation pipeline
    propagation_partitions: int = Field(4, ge=1)
    propagation_batch_size: int = Field(100, ge=1)
    propagation_max_attempts: int = Field(5, ge=1)
    propagation_base_backoff_seconds: float = 0.5
    propagation_max_backoff_seconds: float = 30.0
    propagation_poll_interval_seconds: float = 1.0

    # Session validation
    session_validator: str = "fake"  # "fake" | "remote"
    identity_service_url: str = "http://localhost:8085"
    identity_timeout_seconds: float = 2.0
    session_cookie_name: str = "session_token"

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Gateway
    disconnect_poll_seconds: float = 0.25


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
