"""HTTP client for the access service, used by the desktop app."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from ..schemas.admin import AdminActionResponse, KickAllResponse
from ..schemas.channels import ChannelDescriptor, CreateChannelResponse
from .config import ClientSettings
from .storage import ACCESS_TOKEN_KEY, LocalStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_HEADER = "x-access-token"


class GateClientError(RuntimeError):
    """The service answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(slots=True)
class JoinDetails:
    token: str
    media_endpoint: str


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"{fallback}: {response.reason_phrase}"
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"{fallback}: {response.reason_phrase}"


class GateClient:
    """Wraps the service's JSON API and keeps the access token.

    The token is persisted in the local store so returning users skip the PIN
    prompt.
    """

    def __init__(
        self,
        base_url: str,
        store: LocalStore,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        stored = store.get(ACCESS_TOKEN_KEY)
        self._access_token: Optional[str] = stored if isinstance(stored, str) and stored else None

    @classmethod
    def from_settings(cls, settings: ClientSettings, store: LocalStore | None = None) -> "GateClient":
        store = store if store is not None else LocalStore(settings.store_path)
        return cls(settings.server_url, store, timeout=settings.request_timeout_seconds)

    @property
    def store(self) -> LocalStore:
        return self._store

    async def __aenter__(self) -> "GateClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def has_access(self) -> bool:
        return self._access_token is not None

    def _headers(self) -> dict[str, str]:
        if self._access_token:
            return {ACCESS_TOKEN_HEADER: self._access_token}
        return {}

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        return await self._client.post(path, json=body, headers=self._headers())

    async def verify_app_pin(self, pin: str) -> bool:
        """Submit the app PIN; on success the new access token is stored.

        A wrong PIN answers ``False``; being rate limited raises
        :class:`GateClientError` so the UI can ask the user to wait.
        """

        try:
            response = await self._post("/api/verify-app-pin", {"pin": pin})
        except httpx.HTTPError:
            logger.warning("PIN verification request failed", exc_info=True)
            return False
        if response.status_code == 429:
            raise GateClientError(_error_message(response, "Too many attempts"), response.status_code)
        if response.status_code != 200:
            return False
        token = response.json().get("accessToken")
        if not token:
            return False
        self._access_token = token
        self._store.set(ACCESS_TOKEN_KEY, token)
        return True

    async def restore_access(self) -> bool:
        """Check the stored token; an invalid one is forgotten.

        When the service cannot be reached the token is kept so the user can
        try again later.
        """

        if not self._access_token:
            return False
        try:
            response = await self._client.post(
                "/api/verify-access-token", json={"accessToken": self._access_token}
            )
            valid = bool(response.json().get("valid"))
        except (httpx.HTTPError, ValueError):
            logger.info("Could not verify stored access token; keeping it for later")
            return False
        if not valid:
            self._access_token = None
            self._store.remove(ACCESS_TOKEN_KEY)
        return valid

    async def fetch_join_credential(
        self,
        username: str,
        room: str,
        device_id: str,
        pin: Optional[str] = None,
    ) -> JoinDetails:
        body: dict[str, Any] = {"username": username, "room": room, "deviceId": device_id}
        if pin:
            body["pin"] = pin
        response = await self._post("/api/token", body)
        if response.status_code != 200:
            raise GateClientError(_error_message(response, "Failed to get token"), response.status_code)
        payload = response.json()
        return JoinDetails(token=payload["token"], media_endpoint=payload["mediaEndpoint"])

    async def list_rooms(self) -> List[ChannelDescriptor]:
        response = await self._client.get("/api/rooms", headers=self._headers())
        if response.status_code != 200:
            raise GateClientError(_error_message(response, "Failed to list rooms"), response.status_code)
        return [ChannelDescriptor.model_validate(room) for room in response.json().get("rooms", [])]

    async def create_channel(self, name: str, pin: str, created_by: str) -> CreateChannelResponse:
        response = await self._post(
            "/api/channels",
            {"name": name, "pin": pin or None, "createdBy": created_by},
        )
        if response.status_code != 200:
            raise GateClientError(_error_message(response, "Failed to create channel"), response.status_code)
        return CreateChannelResponse.model_validate(response.json())

    async def verify_channel_pin(self, room_id: str, pin: str) -> bool:
        try:
            response = await self._post("/api/channels/verify-pin", {"roomId": room_id, "pin": pin})
        except httpx.HTTPError:
            return False
        if response.status_code != 200:
            return False
        return bool(response.json().get("valid"))

    # admin panel

    async def verify_admin(self, secret: str) -> bool:
        """Decide whether to show the admin panel.

        A wrong secret answers ``False``. An unconfigured panel or too many
        attempts raise :class:`GateClientError`.
        """

        response = await self._client.post("/api/admin/verify", json={"secret": secret})
        if response.status_code == 403:
            return False
        if response.status_code != 200:
            raise GateClientError(_error_message(response, "Admin verification failed"), response.status_code)
        return bool(response.json().get("valid"))

    async def _admin_action(self, path: str, body: dict[str, Any], fallback: str) -> dict[str, Any]:
        response = await self._client.post(path, json=body)
        if response.status_code != 200:
            raise GateClientError(_error_message(response, fallback), response.status_code)
        return response.json()

    async def change_app_pin(self, secret: str, new_pin: str) -> str:
        payload = await self._admin_action(
            "/api/admin/change-pin", {"secret": secret, "newPin": new_pin}, "Failed to change PIN"
        )
        return AdminActionResponse.model_validate(payload).message

    async def kick_all(self, secret: str) -> int:
        """Disconnect everyone; returns how many participants were removed."""

        payload = await self._admin_action("/api/admin/kick-all", {"secret": secret}, "Failed to kick players")
        return KickAllResponse.model_validate(payload).kicked

    async def invalidate_tokens(self, secret: str) -> str:
        payload = await self._admin_action(
            "/api/admin/invalidate-tokens", {"secret": secret}, "Failed to invalidate tokens"
        )
        return AdminActionResponse.model_validate(payload).message
