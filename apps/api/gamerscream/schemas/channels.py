"""Schemas for channel management and listing."""
from __future__ import annotations

from typing import Any

from pydantic import Field

from .base import CamelModel


class CreateChannelRequest(CamelModel):
    name: Any = None
    pin: Any = None
    created_by: Any = None


class CreateChannelResponse(CamelModel):
    name: str
    room_id: str
    has_pin: bool


class VerifyChannelPinRequest(CamelModel):
    room_id: str = Field(default="")
    pin: Any = None


class ChannelDescriptor(CamelModel):
    channel: int | None = None
    name: str
    room_id: str
    player_count: int = 0
    has_pin: bool = False
    is_custom: bool = False
    created_by: str | None = None


class RoomListResponse(CamelModel):
    rooms: list[ChannelDescriptor]
