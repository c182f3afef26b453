"""RTC join credential issuance.

Join tokens are signed LiveKit JWTs scoped to a single room: they may join,
publish and subscribe there, but never create rooms."""
from __future__ import annotations

import json
import re
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..core.errors import InvalidCredential, NotFound, ValidationError
from .channels import ChannelRegistry
from .media import MediaService

USERNAME_PATTERN = re.compile(r"^[\w\s\-]+$")
DEVICE_ID_MAX_LENGTH = 64
IDENTITY_SUFFIX_LENGTH = 6


@dataclass(slots=True)
class JoinCredential:
    token: str
    media_endpoint: str
    identity: str


def clean_username(username: object, max_length: int = 20) -> str:
    """Trim and validate a display name."""

    if username is None:
        raise ValidationError("username and room are required")
    cleaned = str(username).strip()[:max_length].strip()
    if not cleaned or not USERNAME_PATTERN.match(cleaned):
        raise ValidationError(f"Invalid username (max {max_length} chars, letters/numbers/spaces)")
    return cleaned


def participant_identity(username: str, device_id: str) -> str:
    """Combine the display name with a device-derived suffix so same-named users never collide."""

    suffix = device_id[:IDENTITY_SUFFIX_LENGTH] or secrets.token_hex(IDENTITY_SUFFIX_LENGTH // 2)
    return f"{username}-{suffix}"


class JoinCredentialIssuer:
    def __init__(
        self,
        registry: ChannelRegistry,
        media: MediaService,
        *,
        media_endpoint: str,
        ttl: timedelta = timedelta(hours=24),
        username_max_length: int = 20,
    ) -> None:
        self._registry = registry
        self._media = media
        self._media_endpoint = media_endpoint
        self._ttl = ttl
        self._username_max_length = username_max_length

    def issue(self, username: object, room: object, device_id: object = None, pin: object = None) -> JoinCredential:
        if not room or not isinstance(room, str):
            raise ValidationError("username and room are required")
        name = clean_username(username, self._username_max_length)

        if not self._registry.exists(room):
            raise NotFound()
        custom = self._registry.get(room)
        if custom is not None and custom.has_pin and not self._registry.check_pin(room, pin or ""):
            raise InvalidCredential()

        safe_device_id = str(device_id or "")[:DEVICE_ID_MAX_LENGTH]
        identity = participant_identity(name, safe_device_id)
        token = self._media.mint_join_token(
            identity=identity,
            name=name,
            metadata=json.dumps({"deviceId": safe_device_id}),
            room=room,
            ttl=self._ttl,
        )
        return JoinCredential(token=token, media_endpoint=self._media_endpoint, identity=identity)
