"""
Application settings and configuration.

Loads environment variables (prefix ACRES_) for storage, retry, matching,
automation and export settings.
"""
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ACRES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env
    )

    # Environment
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_JSON: bool = Field(default=False, description="Render logs as JSON lines")

    # Snapshot storage
    STORAGE_BACKEND: Literal["file", "redis", "memory"] = Field(default="file")
    STORAGE_PATH: Path = Field(default=Path("./data/acres_snapshot.json"))
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    SNAPSHOT_KEY: str = Field(default="acres_collector:snapshot")

    # Acres.com client
    REQUEST_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Correlation
    MATCH_TOLERANCE: float = Field(default=0.15, gt=0, description="Acreage tolerance for crop matching")

    # Crop request retries
    MAX_RETRIES: int = Field(default=3, ge=0)
    RETRY_DELAY_SECONDS: float = Field(default=5.0, ge=0)

    # Automation
    AUTOMATION_INTERVAL_SECONDS: float = Field(default=1.5, gt=0)
    REFOCUS_PROBABILITY: float = Field(default=0.15, ge=0, le=1)

    # Export
    EXPORT_DIR: Path = Field(default=Path("./exports"))
    EXPORT_FILENAME: str = Field(default="acres_property_data.csv")


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
