"""Application settings powered by Pydantic BaseSettings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BOOKRANK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    state_path: Path = Field(default=Path("state/bookrank.sqlite"))
    signals_path: Path = Field(default=Path("state/catalog.sqlite"))
    config_path: Path | None = Field(default=None)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
