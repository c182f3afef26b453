"""Schemas for admin API."""
from __future__ import annotations

from typing import Any

from .base import CamelModel


class AdminRequest(CamelModel):
    secret: Any = None


class ChangePinRequest(AdminRequest):
    new_pin: Any = None


class AdminVerifyResponse(CamelModel):
    valid: bool = True


class AdminActionResponse(CamelModel):
    success: bool = True
    message: str


class KickAllResponse(CamelModel):
    success: bool = True
    kicked: int
