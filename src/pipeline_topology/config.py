"""Runtime settings and logging setup."""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    """Service settings, read from ``PIPELINE_TOPOLOGY_*`` environment variables."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    reload: bool = False
    log_level: str = "INFO"
    fetch_timeout_s: float = Field(default=30.0, gt=0)
    max_upload_mb: float = Field(default=200.0, gt=0)
    # hosts GET /topology?url= may fetch from; empty disables remote fetches
    fetch_allowed_hosts: list[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_TOPOLOGY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
