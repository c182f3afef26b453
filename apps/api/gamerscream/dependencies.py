"""Service wiring and FastAPI dependencies."""
from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from fastapi import Depends, Header, Request

from .core.config import Settings
from .core.policy import PolicyStore
from .core.security import AccessTokenCodec
from .services.admin import AdminControlPlane
from .services.channels import ChannelRegistry
from .services.gate import AuthorizationGate
from .services.media import MediaService
from .services.rate_limit import RateLimiter
from .services.rtc import JoinCredentialIssuer

ACCESS_TOKEN_HEADER = "x-access-token"


@dataclass(slots=True)
class Services:
    """Everything a request handler may touch.

    The policy store, channel registry and both limiters are the only shared
    mutable state in the process.
    """

    settings: Settings
    policy: PolicyStore
    codec: AccessTokenCodec
    pin_limiter: RateLimiter
    admin_limiter: RateLimiter
    gate: AuthorizationGate
    registry: ChannelRegistry
    media: MediaService
    issuer: JoinCredentialIssuer
    admin: AdminControlPlane


def build_services(
    settings: Settings,
    *,
    media: MediaService | None = None,
    policy: PolicyStore | None = None,
    clock: Callable[[], float] = time.time,
) -> Services:
    policy = policy or PolicyStore.from_settings(settings)
    media = media or MediaService.from_settings(settings)
    codec = AccessTokenCodec(lambda: policy.signing_secret, settings.access_token_ttl_ms, clock=clock)
    pin_limiter = RateLimiter(settings.pin_rate_limit, settings.pin_rate_window_seconds, clock=clock)
    admin_limiter = RateLimiter(settings.admin_rate_limit, settings.admin_rate_window_seconds, clock=clock)
    registry = ChannelRegistry(
        default_count=settings.default_channel_count,
        grace_seconds=settings.custom_channel_grace_seconds,
        name_max_length=settings.channel_name_max_length,
        clock=clock,
    )
    return Services(
        settings=settings,
        policy=policy,
        codec=codec,
        pin_limiter=pin_limiter,
        admin_limiter=admin_limiter,
        gate=AuthorizationGate(policy, codec, pin_limiter),
        registry=registry,
        media=media,
        issuer=JoinCredentialIssuer(
            registry,
            media,
            media_endpoint=settings.media_endpoint,
            ttl=timedelta(hours=settings.join_token_ttl_hours),
            username_max_length=settings.username_max_length,
        ),
        admin=AdminControlPlane(policy, media, admin_limiter, settings.admin_secret),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def client_key(request: Request) -> str:
    """Network identifier used for rate limiting."""

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def require_access(
    access_token: str | None = Header(default=None, alias=ACCESS_TOKEN_HEADER),
    services: Services = Depends(get_services),
) -> None:
    """Reject the request unless it carries a currently valid access token."""

    services.gate.require_access(access_token)
