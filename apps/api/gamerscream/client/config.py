"""Desktop client configuration."""
from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client settings, read from ``GAMERSCREAM_*`` environment variables.

    Environment variables:
        GAMERSCREAM_SERVER_URL: Base URL of the access service.
        GAMERSCREAM_DATA_DIR: Directory holding the local key-value store.
        GAMERSCREAM_POLL_INTERVAL_SECONDS: Channel list refresh period.
    """

    model_config = SettingsConfigDict(env_prefix="GAMERSCREAM_", env_file=".env", extra="ignore")

    server_url: str = Field(default="http://localhost:3002")
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".gamerscream")
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def store_path(self) -> Path:
        return self.data_dir / "local-storage.json"
