"""In-memory registry of default and user-created voice channels."""
from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

from ..core.errors import UpstreamFailure, ValidationError
from ..core.security import safe_compare

logger = logging.getLogger(__name__)

CHANNEL_PIN_PATTERN = re.compile(r"^\d{1,4}$")
DEFAULT_ROOM_PREFIX = "ch-"
CUSTOM_ROOM_PREFIX = "custom-"


@dataclass(slots=True)
class CustomChannel:
    name: str
    room_id: str
    created_by: str
    created_at: float
    pin: Optional[str] = None

    @property
    def has_pin(self) -> bool:
        return bool(self.pin)


@dataclass(slots=True)
class ChannelListing:
    """A channel plus its occupancy, as returned to clients."""

    name: str
    room_id: str
    player_count: int
    channel: Optional[int] = None
    has_pin: bool = False
    is_custom: bool = False
    created_by: Optional[str] = None


class OccupancySource(Protocol):
    def room_occupancy(self) -> Awaitable[Dict[str, int]]: ...


def default_room_id(channel: int) -> str:
    return f"{DEFAULT_ROOM_PREFIX}{channel}"


class ChannelRegistry:
    """Owns the set of custom channels.

    Empty custom channels are deleted lazily: :meth:`collect` runs with fresh
    occupancy on every listing, and a channel younger than the grace period is
    kept so its creator has time to join.
    """

    def __init__(
        self,
        *,
        default_count: int = 5,
        grace_seconds: float = 10.0,
        name_max_length: int = 20,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_count = default_count
        self._grace = grace_seconds
        self._name_max_length = name_max_length
        self._clock = clock
        self._custom: Dict[str, CustomChannel] = {}

    @property
    def default_channels(self) -> List[int]:
        return list(range(1, self._default_count + 1))

    def is_default(self, room_id: str) -> bool:
        return room_id in {default_room_id(channel) for channel in self.default_channels}

    def get(self, room_id: str) -> Optional[CustomChannel]:
        return self._custom.get(room_id)

    def exists(self, room_id: str) -> bool:
        return self.is_default(room_id) or room_id in self._custom

    def create(self, name: object, pin: object = None, created_by: object = None) -> CustomChannel:
        clean_name = name.strip() if isinstance(name, str) else ""
        if not clean_name:
            raise ValidationError("Channel name is required")
        if len(clean_name) > self._name_max_length:
            raise ValidationError(f"Channel name max {self._name_max_length} characters")

        clean_pin: Optional[str] = None
        if pin is not None and pin != "":
            if not isinstance(pin, str) or not CHANNEL_PIN_PATTERN.match(pin):
                raise ValidationError("PIN must be 1-4 digits")
            clean_pin = pin

        now = self._clock()
        room_id = f"{CUSTOM_ROOM_PREFIX}{int(now * 1000)}-{secrets.token_hex(8)}"
        channel = CustomChannel(
            name=clean_name,
            room_id=room_id,
            created_by=str(created_by).strip() if created_by else "unknown",
            created_at=now,
            pin=clean_pin,
        )
        self._custom[room_id] = channel
        logger.info(
            "Custom channel created: %r (%s)%s",
            channel.name,
            room_id,
            " [PIN protected]" if channel.has_pin else "",
        )
        return channel

    def check_pin(self, room_id: str, pin: object) -> bool:
        """Return whether ``pin`` opens ``room_id``.

        Unknown rooms answer ``False`` exactly like a wrong PIN.
        """

        if self.is_default(room_id):
            return True
        channel = self._custom.get(room_id)
        if channel is None:
            return False
        if not channel.pin:
            return True
        candidate = "" if pin is None else str(pin)
        return safe_compare(candidate, channel.pin)

    def collect(self, occupancy: Mapping[str, int]) -> List[str]:
        """Delete empty custom channels older than the grace period."""

        now = self._clock()
        removed: List[str] = []
        for room_id, channel in list(self._custom.items()):
            if occupancy.get(room_id, 0) == 0 and now - channel.created_at >= self._grace:
                del self._custom[room_id]
                removed.append(room_id)
                logger.info("Custom channel auto-deleted: %r (%s)", channel.name, room_id)
        return removed

    def listing(self, occupancy: Optional[Mapping[str, int]]) -> List[ChannelListing]:
        """Build the channel list; ``None`` means occupancy is unknown and nothing is collected."""

        if occupancy is not None:
            self.collect(occupancy)
        counts = occupancy or {}

        rooms = [
            ChannelListing(
                channel=channel,
                name=default_room_id(channel),
                room_id=default_room_id(channel),
                player_count=counts.get(default_room_id(channel), 0),
            )
            for channel in self.default_channels
        ]
        for room_id, custom in self._custom.items():
            rooms.append(
                ChannelListing(
                    name=custom.name,
                    room_id=room_id,
                    player_count=counts.get(room_id, 0),
                    has_pin=custom.has_pin,
                    is_custom=True,
                    created_by=custom.created_by,
                )
            )
        return rooms

    def __len__(self) -> int:
        return len(self._custom)


async def list_channels(registry: ChannelRegistry, media: OccupancySource) -> List[ChannelListing]:
    """List channels with live occupancy, collecting empty custom channels on the way."""

    try:
        occupancy: Optional[Dict[str, int]] = await media.room_occupancy()
    except UpstreamFailure:
        logger.warning("Media service unavailable; reporting channels without occupancy")
        occupancy = None
    return registry.listing(occupancy)
