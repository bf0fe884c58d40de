"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ALLOWED_ORIGINS: str = "*"

    # Supabase (source store)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_CONTACTS_TABLE: str = "contacts"
    SUPABASE_TIMEOUT: float = 30.0

    # HubSpot (CRM)
    HUBSPOT_API_KEY: str = ""
    HUBSPOT_BASE_URL: str = "https://api.hubapi.com"
    HUBSPOT_TIMEOUT: float = 30.0
    HUBSPOT_PAGE_SIZE: int = 100  # HubSpot search API maximum
    HUBSPOT_MAX_PAGES: int = 1000

    # Reconciliation
    RECONCILIATION_FETCH_LIMIT: int = 1000  # Rows fetched per side before reconciling

    # Monitoring
    SENTRY_DSN: str = ""

    def supabase_configured(self) -> bool:
        """Return True if both Supabase URL and key are set."""
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)

    def hubspot_configured(self) -> bool:
        """Return True if a HubSpot token is set."""
        return bool(self.HUBSPOT_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
