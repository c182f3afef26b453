"""Admin endpoints, guarded by the operator-held admin secret."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..dependencies import Services, client_key, get_services
from ..schemas import admin as admin_schema

router = APIRouter(prefix="/admin")


@router.post("/verify", response_model=admin_schema.AdminVerifyResponse)
async def verify(
    payload: admin_schema.AdminRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> admin_schema.AdminVerifyResponse:
    """Let the client decide whether to show the admin panel."""

    services.admin.authorize(payload.secret, client_key(request))
    return admin_schema.AdminVerifyResponse(valid=True)


@router.post("/change-pin", response_model=admin_schema.AdminActionResponse)
async def change_pin(
    payload: admin_schema.ChangePinRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> admin_schema.AdminActionResponse:
    """Set a new app PIN and log everyone out."""

    services.admin.authorize(payload.secret, client_key(request))
    message = services.admin.change_pin(payload.new_pin)
    return admin_schema.AdminActionResponse(message=message)


@router.post("/kick-all", response_model=admin_schema.KickAllResponse)
async def kick_all(
    payload: admin_schema.AdminRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> admin_schema.KickAllResponse:
    """Disconnect every participant from every room."""

    services.admin.authorize(payload.secret, client_key(request))
    kicked = await services.admin.kick_all()
    return admin_schema.KickAllResponse(kicked=kicked)


@router.post("/invalidate-tokens", response_model=admin_schema.AdminActionResponse)
async def invalidate_tokens(
    payload: admin_schema.AdminRequest,
    request: Request,
    services: Services = Depends(get_services),
) -> admin_schema.AdminActionResponse:
    """Rotate the signing secret without changing the PIN."""

    services.admin.authorize(payload.secret, client_key(request))
    return admin_schema.AdminActionResponse(message=services.admin.invalidate_tokens())
