"""Application settings using Pydantic BaseSettings."""

import re

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_async_database_url() -> str:
    """Get database URL converted for asyncpg driver."""
    url = settings.database_url
    # Convert postgres:// to postgresql+asyncpg:// for SQLAlchemy async
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    # asyncpg doesn't support sslmode, it uses ssl parameter
    if "sslmode=" in url:
        url = re.sub(r'[?&]sslmode=[^&]*', '', url)
        url = url.rstrip('?&')
    return url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Postgres (sqlite+aiosqlite works for local dev)
    database_url: str = "sqlite+aiosqlite:///./crm.db"

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    api_v1_prefix: str = "/api/v1"
    cors_allowed_origins: list[str] = ["*"]

    # Phone normalization (Hong Kong)
    default_country_code: str = "852"

    # n8n workflow webhook (the settings table value wins when present)
    n8n_webhook_url: str = ""
    n8n_webhook_secret: str = ""
    n8n_timeout_seconds: float = 30.0

    # Campaign audience
    campaign_require_opt_in: bool = False  # opt-in gate is off by business decision
    hot_recent_buyer_exclusion_days: int = 60
    recent_buyer_tag: str = "recent_buyer"

    # WhatsApp account protection
    whatsapp_max_messages_per_day: int = 1000
    whatsapp_max_messages_per_hour: int = 100
    whatsapp_min_hours_between_messages: float = 0  # 0 = disabled
    whatsapp_max_messages_per_contact_per_day: int = 999999  # 999999 = disabled
    whatsapp_min_delay_between_messages_ms: int = 2000
    whatsapp_enforce_24_hour_window: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
