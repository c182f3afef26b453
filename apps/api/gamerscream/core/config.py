"""Application configuration for the access service."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3002)

    livekit_api_key: str = Field(default="devkey")
    livekit_api_secret: str = Field(default="devsecret")
    livekit_url: str = Field(default="ws://localhost:7880")
    livekit_http_url: str = Field(default="http://localhost:7880")
    livekit_client_url: str = Field(default="")

    app_pin: str = Field(default="1520")
    token_secret: str = Field(default="")
    admin_secret: str | None = Field(default=None)
    admin_state_path: Path = Field(default=Path("admin-state.json"))

    access_token_ttl_ms: int = Field(default=30 * 24 * 60 * 60 * 1000, ge=1)
    join_token_ttl_hours: int = Field(default=24, ge=1)

    pin_rate_limit: int = Field(default=5, ge=1)
    pin_rate_window_seconds: float = Field(default=60.0, gt=0)
    admin_rate_limit: int = Field(default=3, ge=1)
    admin_rate_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_sweep_seconds: float = Field(default=60.0 * 60.0, gt=0)

    default_channel_count: int = Field(default=5, ge=0)
    custom_channel_grace_seconds: float = Field(default=10.0, ge=0)
    channel_name_max_length: int = Field(default=20, ge=1)
    username_max_length: int = Field(default=20, ge=1)

    max_body_bytes: int = Field(default=10 * 1024, ge=1)
    cors_allow_origin_regex: str = Field(default=r"^http://localhost:\d+$")

    @field_validator("admin_secret", mode="before")
    @classmethod
    def _blank_admin_secret(cls, value: object) -> object:
        """Treat an empty ADMIN_SECRET as unset."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def signing_secret_default(self) -> str:
        """Initial token signing secret when none is configured or persisted."""

        return self.token_secret or f"{self.livekit_api_secret}-gamerscream"

    @property
    def media_endpoint(self) -> str:
        """LiveKit URL handed to desktop clients."""

        return self.livekit_client_url or self.livekit_url


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
