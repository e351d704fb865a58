"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    looks_table: str = "looks"
    looks_bucket: str = "looks"
    local_storage_dir: Path = Path.home() / ".lookbook"
    local_storage_key: str = "lookbook_looks"
    local_capacity_bytes: int = 4_500_000
    remote_poll_interval_seconds: float | None = 15.0
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_image_model: str = "gpt-image-1"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
