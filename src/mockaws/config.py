"""Emulator configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Emulator settings loaded from ``MOCKAWS_*`` environment variables."""

    # Storage
    database_url: str = "sqlite:///mockaws.sqlite"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="MOCKAWS_", env_file=".env", extra="ignore")
