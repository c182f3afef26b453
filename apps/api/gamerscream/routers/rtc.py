"""RTC join token issuance."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..dependencies import Services, get_services, require_access
from ..schemas.rtc import RtcTokenRequest, RtcTokenResponse

router = APIRouter(dependencies=[Depends(require_access)])


@router.post("/token", response_model=RtcTokenResponse)
async def create_rtc_token(
    payload: RtcTokenRequest,
    services: Services = Depends(get_services),
) -> RtcTokenResponse:
    """Return a room-scoped media token and the endpoint to use it with."""

    credential = services.issuer.issue(payload.username, payload.room, payload.device_id, payload.pin)
    return RtcTokenResponse(token=credential.token, media_endpoint=credential.media_endpoint)
