"""App PIN verification endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..dependencies import Services, client_key, get_services
from ..schemas import auth as auth_schema

router = APIRouter()


@router.post("/verify-app-pin", response_model=auth_schema.VerifyPinResponse)
async def verify_app_pin(
    payload: auth_schema.VerifyPinRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> auth_schema.VerifyPinResponse:
    """Exchange the app PIN for a long-lived access token."""

    token = services.gate.verify_pin(payload.pin, client_key(request))
    return auth_schema.VerifyPinResponse(access_token=token)


@router.post("/verify-access-token", response_model=auth_schema.ValidResponse)
async def verify_access_token(
    payload: auth_schema.VerifyAccessTokenRequest,
    services: Services = Depends(get_services),
) -> auth_schema.ValidResponse:
    """Let returning clients skip the PIN prompt."""

    return auth_schema.ValidResponse(valid=services.gate.verify_token(payload.access_token or ""))
