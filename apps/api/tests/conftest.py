"""Shared fixtures: a controllable clock, a fake media service and an app wired to both."""
from __future__ import annotations

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from gamerscream.core.config import Settings
from gamerscream.core.errors import UpstreamFailure
from gamerscream.dependencies import Services, build_services
from gamerscream.main import create_app

ADMIN_SECRET = "operator-secret"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMedia:
    """Stands in for the LiveKit server API."""

    def __init__(self) -> None:
        self.rooms: dict[str, list[str]] = {}
        self.unavailable = False
        self.failing_rooms: set[str] = set()
        self.failing_removals: set[str] = set()
        self.removed: list[tuple[str, str]] = []
        self.minted: list[dict] = []

    async def room_occupancy(self) -> dict[str, int]:
        if self.unavailable:
            raise UpstreamFailure("Failed to list rooms")
        return {name: len(identities) for name, identities in self.rooms.items()}

    async def list_room_names(self) -> list[str]:
        return list(await self.room_occupancy())

    async def list_participants(self, room: str) -> list[str]:
        if room in self.failing_rooms:
            raise UpstreamFailure(f"Failed to list participants of {room}")
        return list(self.rooms.get(room, []))

    async def remove_participant(self, room: str, identity: str) -> None:
        if identity in self.failing_removals:
            raise UpstreamFailure(f"Failed to remove {identity} from {room}")
        self.rooms[room].remove(identity)
        self.removed.append((room, identity))

    def mint_join_token(self, **kwargs) -> str:
        self.minted.append(kwargs)
        return f"jwt-for-{kwargs['identity']}"


def make_settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "app_pin": "1520",
        "token_secret": "test-signing-secret",
        "admin_secret": ADMIN_SECRET,
        "admin_state_path": tmp_path / "admin-state.json",
        "livekit_client_url": "wss://media.example.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def services(settings: Settings, media: FakeMedia, clock: FakeClock) -> Services:
    return build_services(settings, media=media, clock=clock)  # type: ignore[arg-type]


@pytest.fixture
def app(settings: Settings, services: Services):
    return create_app(settings, services=services)


def api_client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


async def login(client: AsyncClient, pin: str = "1520") -> dict[str, str]:
    response = await client.post("/api/verify-app-pin", json={"pin": pin})
    assert response.status_code == 200
    return {"x-access-token": response.json()["accessToken"]}
