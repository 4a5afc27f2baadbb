"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="PlexVoice", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    pms_url: HttpUrl = Field(default="http://127.0.0.1:32400", alias="PMS_URL")
    pms_token: str | None = Field(default=None, alias="PMS_TOKEN")
    pms_identifier: str | None = Field(default=None, alias="PMS_IDENTIFIER")
    client_identifier: str = Field(
        default="plexvoice", alias="PLEX_CLIENT_IDENTIFIER"
    )
    plex_timeout_seconds: float = Field(
        default=15.0, alias="PLEX_TIMEOUT", gt=0, le=300
    )

    player_name: str | None = Field(default=None, alias="PLEXPLAYER_NAME")
    player_address: str | None = Field(default=None, alias="PLEXPLAYER_IP")

    tv_library_section: str = Field(default="1", alias="TV_LIBRARY_SECTION")

    confidence_confirm_threshold: float = Field(
        default=70.0, alias="CONFIDENCE_CONFIRM_THRESHOLD", ge=0, le=100
    )
    match_minimum_score: float = Field(
        default=40.0, alias="MATCH_MINIMUM_SCORE", ge=0, le=100
    )
    top_rated_fraction: float = Field(
        default=0.25, alias="TOP_RATED_FRACTION", gt=0, le=1
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("pms_token", "pms_identifier", "player_name", "player_address", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        """Treat empty environment values as unset overrides."""

        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("tv_library_section", mode="before")
    @classmethod
    def _normalise_section(cls, value: object) -> str:
        text = str(value).strip().strip("/")
        if not text:
            raise ValueError("TV_LIBRARY_SECTION must not be empty")
        return text

    @model_validator(mode="after")
    def _check_match_thresholds(self) -> "Settings":
        """Make sure a silent match is never easier than any match at all."""

        if self.match_minimum_score > self.confidence_confirm_threshold:
            raise ValueError(
                "MATCH_MINIMUM_SCORE must not exceed CONFIDENCE_CONFIRM_THRESHOLD"
            )
        return self

    @property
    def pms_base_url(self) -> str:
        """Return the server URL without a trailing slash."""

        return str(self.pms_url).rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
