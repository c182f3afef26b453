"""Data contracts for RTC endpoints."""
from __future__ import annotations

from typing import Any

from pydantic import Field

from .base import CamelModel


class RtcTokenRequest(CamelModel):
    username: Any = Field(default=None, description="Display name, trimmed and validated server-side")
    room: Any = Field(default=None, description="Room id to join")
    device_id: Any = Field(default=None, description="Stable per-install identifier")
    pin: Any = Field(default=None, description="Channel PIN for protected custom channels")


class RtcTokenResponse(CamelModel):
    token: str = Field(..., description="JWT token for the media service")
    media_endpoint: str = Field(..., description="Media service URL to connect to")
