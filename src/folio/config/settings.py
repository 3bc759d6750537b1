"""Application settings and configuration."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FOLIO_",
    )

    app_name: str = "Portfolio Engine"
    app_version: str = "0.1.0"

    log_level: str = "INFO"
    # Emit reducer/cache DEBUG lines when log_level is DEBUG
    trace_actions: bool = False

    # Timestamps (created_at, updated_at, trade dates) are localized here
    timezone: str = "Europe/London"

    # Defaults for newly created portfolios
    default_currency: str = "GBP"
    enable_live_prices: bool = True
    live_price_update_interval: int = 10

    # Upper bound for each calculation cache table
    cache_max_entries: int = 10

    # Quote currencies expressed in minor units (pence)
    minor_unit_currencies: list[str] = ["GBX", "GBp"]


# Global settings instance (can be replaced at runtime)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to force reload."""
    global _settings
    _settings = None
