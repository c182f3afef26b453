"""Custom channel management and room listing."""
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from ..dependencies import Services, get_services, require_access
from ..schemas import auth as auth_schema
from ..schemas import channels as channels_schema
from ..services import channels as channels_service

router = APIRouter(dependencies=[Depends(require_access)])


@router.post("/channels", response_model=channels_schema.CreateChannelResponse)
async def create_channel(
    payload: channels_schema.CreateChannelRequest,
    services: Services = Depends(get_services),
) -> channels_schema.CreateChannelResponse:
    """Create an ephemeral channel; the PIN is never echoed back."""

    channel = services.registry.create(payload.name, payload.pin, payload.created_by)
    return channels_schema.CreateChannelResponse(
        name=channel.name,
        room_id=channel.room_id,
        has_pin=channel.has_pin,
    )


@router.post("/channels/verify-pin", response_model=auth_schema.ValidResponse)
async def verify_channel_pin(
    payload: channels_schema.VerifyChannelPinRequest,
    services: Services = Depends(get_services),
) -> auth_schema.ValidResponse:
    """Check a channel PIN before connecting."""

    return auth_schema.ValidResponse(valid=services.registry.check_pin(payload.room_id, payload.pin))


@router.get("/rooms", response_model=channels_schema.RoomListResponse)
async def list_rooms(services: Services = Depends(get_services)) -> channels_schema.RoomListResponse:
    """Return default and custom channels with participant counts."""

    listings = await channels_service.list_channels(services.registry, services.media)
    return channels_schema.RoomListResponse(
        rooms=[channels_schema.ChannelDescriptor(**asdict(listing)) for listing in listings]
    )
