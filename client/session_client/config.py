"""Client configuration using pydantic-settings."""

import logging
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Document Study Client"
    environment: str = "development"
    log_level: str = "info"

    # Remote backend
    api_base_url: str = "http://localhost:8000"
    api_prefix: str = "/api"
    health_path: str = "/health"
    request_timeout_seconds: float = 30.0

    # Health polling
    poll_interval_seconds: float = 30.0

    # Durable storage
    storage_backend: Literal["memory", "file", "mongodb"] = "file"
    storage_path: str = ".session_client_storage.json"

    # MongoDB (storage_backend == "mongodb")
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "study_client"
    storage_collection: str = "client_storage"


settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings


def configure_logging(config: Settings | None = None) -> None:
    """Configure root logging from settings."""
    config = config or settings
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
