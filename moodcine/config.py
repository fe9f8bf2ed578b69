"""Application configuration models."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="MoodCine", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    openrouter_api_key: str | None = Field(
        default=None, alias="OPENROUTER_API_KEY"
    )
    openrouter_model: str = Field(
        default="google/gemini-2.5-flash", alias="OPENROUTER_MODEL"
    )
    openrouter_api_url: HttpUrl = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_API_URL"
    )
    recommendation_temperature: float = Field(
        default=0.7, alias="RECOMMENDATION_TEMPERATURE", ge=0.0, le=2.0
    )
    details_temperature: float = Field(
        default=0.4, alias="DETAILS_TEMPERATURE", ge=0.0, le=2.0
    )
    generation_timeout_seconds: float = Field(
        default=60.0, alias="GENERATION_TIMEOUT_SECONDS", gt=0
    )

    itunes_api_url: HttpUrl = Field(
        default="https://itunes.apple.com", alias="ITUNES_API_URL"
    )
    itunes_country: str | None = Field(default=None, alias="ITUNES_COUNTRY")
    poster_timeout_seconds: float = Field(
        default=10.0, alias="POSTER_TIMEOUT_SECONDS", gt=0
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./moodcine.db", alias="DATABASE_URL"
    )
    selection_slot_key: str = Field(
        default="moodcine-watchlist", alias="SELECTION_SLOT_KEY", min_length=1
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> str:
        """Accept level names in any case and reject unknown ones."""

        if value is None:
            return "INFO"
        level = str(value).strip().upper()
        if not level:
            return "INFO"
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError("Unknown log level configured")
        return level

    @field_validator("itunes_country", mode="before")
    @classmethod
    def _normalise_country(cls, value: object) -> str | None:
        if value is None:
            return None
        country = str(value).strip().upper()
        return country or None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
