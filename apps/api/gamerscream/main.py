"""FastAPI application for the GamerScream access service."""
from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from .core.config import Settings, get_settings
from .core.errors import GateError
from .core.policy import PolicyStore
from .dependencies import ACCESS_TOKEN_HEADER, Services, build_services
from .routers import admin as admin_router
from .routers import auth as auth_router
from .routers import channels as channels_router
from .routers import rtc as rtc_router
from .schemas.auth import HealthResponse
from .services.media import MediaService
from .services.rate_limit import sweep_forever

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    """Reject request bodies larger than ``max_bytes`` before any handler runs."""

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        length = headers.get("content-length")
        if length is None and "chunked" in headers.get("transfer-encoding", "").lower():
            response = JSONResponse({"error": "Content-Length required"}, status_code=411)
            await response(scope, receive, send)
            return
        if length is not None and (not length.isdigit() or int(length) > self.max_bytes):
            response = JSONResponse({"error": "Request body too large"}, status_code=413)
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)


def _origin_guard(pattern: re.Pattern[str]) -> Callable:
    async def guard(request: Request, call_next):
        # The packaged desktop client sends no Origin at all.
        origin = request.headers.get("origin")
        if origin and not pattern.match(origin):
            return JSONResponse({"error": "Not allowed by CORS"}, status_code=403)
        return await call_next(request)

    return guard


async def _gate_error_handler(_request: Request, exc: GateError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected malformed request: %s", exc.errors())
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    *,
    media: MediaService | None = None,
    policy: PolicyStore | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build the application with its own set of services."""

    settings = settings or get_settings()
    services = services or build_services(settings, media=media, policy=policy)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(
            sweep_forever([services.pin_limiter, services.admin_limiter], settings.rate_limit_sweep_seconds)
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(title="GamerScream Access API", version="1.1.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=settings.cors_allow_origin_regex,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", ACCESS_TOKEN_HEADER],
    )
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.middleware("http")(_origin_guard(re.compile(settings.cors_allow_origin_regex)))

    app.add_exception_handler(GateError, _gate_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    @app.get("/api/health", response_model=HealthResponse, tags=["meta"])
    async def health() -> HealthResponse:
        """Simple liveness probe."""

        return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))

    @app.head("/api/health", tags=["meta"])
    async def health_head() -> Response:
        """Allow HEAD for uptime monitors that only need the status code."""

        return Response(status_code=200)

    app.include_router(auth_router.router, prefix="/api", tags=["auth"])
    app.include_router(channels_router.router, prefix="/api", tags=["channels"])
    app.include_router(rtc_router.router, prefix="/api", tags=["rtc"])
    app.include_router(admin_router.router, prefix="/api", tags=["admin"])
    return app


app = create_app()
