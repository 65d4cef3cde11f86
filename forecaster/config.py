from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FORECASTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    openweather_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FORECASTER_OPENWEATHER_API_KEY", "OPENWEATHER_API_KEY"),
    )
    openweather_base_url: str = "http://api.openweathermap.org"
    http_timeout_seconds: float = Field(default=8.0, gt=0)
    database_url: str = "sqlite:///weather.db"
    database_echo: bool = False
    cache_ttl_minutes: int = Field(default=30, ge=1)
    log_level: str = "INFO"

    @field_validator("openweather_api_key")
    @classmethod
    def validate_api_key(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        text = value.strip()
        return text or None

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
