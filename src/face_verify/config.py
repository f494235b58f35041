"""Application configuration."""

import os

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    match_threshold: float = 0.6
    session_capacity: int = 10
    default_duration_minutes: int = 30
    min_duration_minutes: int = 5
    max_duration_minutes: int = 120
    sweep_interval_seconds: float = 60.0
    embedding_length: int | None = 128
    max_image_bytes: int = 10_000_000
    max_queued_frames: int = 256
    cors_allowed_origins: str = "http://localhost:3000"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 5001
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        if self.match_threshold <= 0:
            raise ValueError("match_threshold must be positive")
        if self.session_capacity <= 0:
            raise ValueError("session_capacity must be positive")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.max_queued_frames <= 0:
            raise ValueError("max_queued_frames must be positive")
        if self.min_duration_minutes > self.max_duration_minutes:
            raise ValueError("min_duration_minutes exceeds max_duration_minutes")
        if not (
            self.min_duration_minutes
            <= self.default_duration_minutes
            <= self.max_duration_minutes
        ):
            raise ValueError("default_duration_minutes is outside the allowed range")
        return self


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Parse the CORS origin list from env."""
    if raw is None:
        return []
    cleaned = raw.strip()
    if cleaned == "*":
        return ["*"]
    return [chunk.strip() for chunk in cleaned.split(",") if chunk.strip()]
