"""LiveKit media service abstraction.

This module encapsulates everything the access service needs from the SFU:
room occupancy, participant management for the admin panel, and signing of
room-scoped join tokens."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator, Dict, List

from livekit import api

from ..core.config import Settings
from ..core.errors import UpstreamFailure

logger = logging.getLogger(__name__)


class MediaService:
    """Thin async wrapper around the LiveKit server API.

    Every management call raises :class:`UpstreamFailure` when LiveKit cannot
    be reached or rejects the request.
    """

    def __init__(self, http_url: str, api_key: str, api_secret: str) -> None:
        self._http_url = http_url
        self._api_key = api_key
        self._api_secret = api_secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "MediaService":
        return cls(settings.livekit_http_url, settings.livekit_api_key, settings.livekit_api_secret)

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[api.LiveKitAPI]:
        client = api.LiveKitAPI(self._http_url, self._api_key, self._api_secret)
        try:
            yield client
        finally:
            await client.aclose()

    async def room_occupancy(self) -> Dict[str, int]:
        """Return participant counts keyed by room name."""

        try:
            async with self._client() as client:
                response = await client.room.list_rooms(api.ListRoomsRequest())
        except Exception as exc:  # noqa: BLE001 - any transport error means the SFU is unavailable
            raise UpstreamFailure("Failed to list rooms") from exc
        return {room.name: int(room.num_participants) for room in response.rooms}

    async def list_room_names(self) -> List[str]:
        return list(await self.room_occupancy())

    async def list_participants(self, room: str) -> List[str]:
        """Return the identities of everyone in ``room``."""

        try:
            async with self._client() as client:
                response = await client.room.list_participants(api.ListParticipantsRequest(room=room))
        except Exception as exc:  # noqa: BLE001
            raise UpstreamFailure(f"Failed to list participants of {room}") from exc
        return [participant.identity for participant in response.participants]

    async def remove_participant(self, room: str, identity: str) -> None:
        try:
            async with self._client() as client:
                await client.room.remove_participant(api.RoomParticipantIdentity(room=room, identity=identity))
        except Exception as exc:  # noqa: BLE001
            raise UpstreamFailure(f"Failed to remove {identity} from {room}") from exc

    def mint_join_token(self, *, identity: str, name: str, metadata: str, room: str, ttl: timedelta) -> str:
        """Sign a token that can join exactly ``room`` and nothing else."""

        grants = api.VideoGrants(
            room_join=True,
            room=room,
            can_publish=True,
            can_subscribe=True,
            room_create=False,
        )
        token = (
            api.AccessToken(self._api_key, self._api_secret)
            .with_identity(identity)
            .with_name(name)
            .with_metadata(metadata)
            .with_grants(grants)
            .with_ttl(ttl)
        )
        return token.to_jwt()
