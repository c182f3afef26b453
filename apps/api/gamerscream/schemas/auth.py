"""Schemas for the app PIN gate."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import CamelModel


class VerifyPinRequest(CamelModel):
    pin: Any = None


class VerifyPinResponse(CamelModel):
    access_token: str


class VerifyAccessTokenRequest(CamelModel):
    access_token: Any = None


class ValidResponse(CamelModel):
    valid: bool


class HealthResponse(CamelModel):
    status: str = Field(default="ok")
    timestamp: datetime
