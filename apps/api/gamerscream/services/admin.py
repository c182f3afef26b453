"""Operator-only controls: PIN rotation, token invalidation and kicking everyone."""
from __future__ import annotations

import logging

from ..core.errors import InvalidCredential, RateLimited, ServiceUnavailable, UpstreamFailure, ValidationError
from ..core.policy import PolicyStore
from ..core.security import safe_compare
from .media import MediaService
from .rate_limit import RateLimiter

logger = logging.getLogger(__name__)

MIN_PIN_LENGTH = 4


class AdminControlPlane:
    """Every mutation of the app policy goes through here.

    An unset admin secret disables the whole plane instead of leaving it open.
    """

    def __init__(
        self,
        policy: PolicyStore,
        media: MediaService,
        limiter: RateLimiter,
        admin_secret: str | None,
    ) -> None:
        self._policy = policy
        self._media = media
        self._limiter = limiter
        self._admin_secret = admin_secret
        if not admin_secret:
            logger.warning("ADMIN_SECRET not set; admin panel will be disabled")

    @property
    def enabled(self) -> bool:
        return bool(self._admin_secret)

    def authorize(self, secret: object, client_key: str) -> None:
        """Check configuration, rate limit and secret, in that order."""

        if not self._admin_secret:
            raise ServiceUnavailable()
        if not self._limiter.allow(client_key):
            raise RateLimited()
        if not secret or not safe_compare(str(secret), self._admin_secret):
            raise InvalidCredential("Invalid admin secret")

    def change_pin(self, new_pin: object) -> str:
        if new_pin is None or len(str(new_pin)) < MIN_PIN_LENGTH:
            raise ValidationError(f"PIN must be at least {MIN_PIN_LENGTH} characters")
        self._policy.replace(app_pin=str(new_pin), rotate_secret=True)
        logger.info("Admin changed PIN and invalidated all tokens")
        return "PIN changed. All users will need to re-enter the new PIN."

    def invalidate_tokens(self) -> str:
        self._policy.replace(rotate_secret=True)
        logger.info("Admin invalidated all access tokens")
        return "All tokens invalidated. Users must re-enter PIN."

    async def kick_all(self) -> int:
        """Remove every participant from every room; returns how many removals succeeded."""

        rooms = await self._media.list_room_names()
        kicked = 0
        for room in rooms:
            try:
                identities = await self._media.list_participants(room)
            except UpstreamFailure:
                logger.exception("Skipping room %s during kick-all", room)
                continue
            for identity in identities:
                try:
                    await self._media.remove_participant(room, identity)
                except UpstreamFailure:
                    logger.exception("Failed to kick %s from %s", identity, room)
                    continue
                kicked += 1
        logger.info("Admin kicked %d participants from all rooms", kicked)
        return kicked
