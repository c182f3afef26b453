"""End-to-end tests of the HTTP surface."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from gamerscream.main import create_app

from conftest import ADMIN_SECRET, api_client, login, make_settings


@pytest.mark.asyncio
async def test_health_endpoint(app) -> None:
    async with api_client(app) as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_pin_gate_and_rate_limit(app) -> None:
    async with api_client(app) as client:
        ok = await client.post("/api/verify-app-pin", json={"pin": "1520"})
        assert ok.status_code == 200
        token = ok.json()["accessToken"]

        for _ in range(4):
            wrong = await client.post("/api/verify-app-pin", json={"pin": "0000"})
            assert wrong.status_code == 403
            assert wrong.json() == {"error": "Invalid PIN"}

        limited = await client.post("/api/verify-app-pin", json={"pin": "1520"})
        assert limited.status_code == 429

        check = await client.post("/api/verify-access-token", json={"accessToken": token})
        assert check.json() == {"valid": True}


@pytest.mark.asyncio
async def test_sixth_attempt_is_limited_regardless_of_pin(app) -> None:
    async with api_client(app) as client:
        for _ in range(5):
            response = await client.post("/api/verify-app-pin", json={"pin": "0000"})
            assert response.status_code == 403

        response = await client.post("/api/verify-app-pin", json={"pin": "1520"})

    assert response.status_code == 429
    assert response.json() == {"error": "Too many attempts. Try again later."}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"pin": 1520}, {"pin": ""}, {"pin": None}, {"pin": ["1520"]}])
async def test_malformed_pins_look_like_wrong_pins(app, body) -> None:
    async with api_client(app) as client:
        response = await client.post("/api/verify-app-pin", json=body)

    assert response.status_code == 403
    assert response.json() == {"error": "Invalid PIN"}


@pytest.mark.asyncio
async def test_verify_access_token_rejects_garbage(app) -> None:
    async with api_client(app) as client:
        for body in ({}, {"accessToken": "nope"}, {"accessToken": 42}):
            response = await client.post("/api/verify-access-token", json=body)
            assert response.status_code == 200
            assert response.json() == {"valid": False}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("method", "path", "body"),
    [
        ("GET", "/api/rooms", None),
        ("POST", "/api/token", {"username": "alice", "room": "ch-1", "deviceId": "d"}),
        ("POST", "/api/channels", {"name": "Lobby"}),
        ("POST", "/api/channels/verify-pin", {"roomId": "ch-1", "pin": "1"}),
    ],
)
async def test_protected_routes_require_access_token(app, method, path, body) -> None:
    async with api_client(app) as client:
        missing = await client.request(method, path, json=body)
        invalid = await client.request(method, path, json=body, headers={"x-access-token": "1.abc"})

    assert missing.status_code == 401
    assert invalid.status_code == 401
    assert missing.json() == {"error": "Unauthorized — app PIN required"}


@pytest.mark.asyncio
async def test_channel_lifecycle(app, media, clock) -> None:
    async with api_client(app) as client:
        headers = await login(client)

        created = await client.post(
            "/api/channels", json={"name": " Raid ", "pin": "42", "createdBy": "alice"}, headers=headers
        )
        assert created.status_code == 200
        channel = created.json()
        assert channel["name"] == "Raid"
        assert channel["hasPin"] is True
        assert "pin" not in channel
        room_id = channel["roomId"]

        rooms = (await client.get("/api/rooms", headers=headers)).json()["rooms"]
        assert [room["roomId"] for room in rooms] == ["ch-1", "ch-2", "ch-3", "ch-4", "ch-5", room_id]
        custom = rooms[-1]
        assert custom["isCustom"] is True
        assert custom["createdBy"] == "alice"
        assert custom["playerCount"] == 0

        wrong = await client.post("/api/channels/verify-pin", json={"roomId": room_id, "pin": "41"}, headers=headers)
        right = await client.post("/api/channels/verify-pin", json={"roomId": room_id, "pin": "42"}, headers=headers)
        unknown = await client.post(
            "/api/channels/verify-pin", json={"roomId": "custom-1-missing", "pin": "42"}, headers=headers
        )
        assert wrong.json() == {"valid": False}
        assert right.json() == {"valid": True}
        assert unknown.status_code == 200
        assert unknown.json() == {"valid": False}

        clock.advance(10)
        rooms = (await client.get("/api/rooms", headers=headers)).json()["rooms"]
        assert room_id not in [room["roomId"] for room in rooms]


@pytest.mark.asyncio
async def test_rooms_report_occupancy(app, media) -> None:
    media.rooms = {"ch-2": ["a-1", "b-2"]}
    async with api_client(app) as client:
        headers = await login(client)
        rooms = (await client.get("/api/rooms", headers=headers)).json()["rooms"]

    assert rooms[1] == {
        "channel": 2,
        "name": "ch-2",
        "roomId": "ch-2",
        "playerCount": 2,
        "hasPin": False,
        "isCustom": False,
        "createdBy": None,
    }


@pytest.mark.asyncio
async def test_create_channel_validation_errors(app) -> None:
    async with api_client(app) as client:
        headers = await login(client)
        empty = await client.post("/api/channels", json={"name": "  "}, headers=headers)
        long_name = await client.post("/api/channels", json={"name": "n" * 21}, headers=headers)
        bad_pin = await client.post("/api/channels", json={"name": "ok", "pin": "12345"}, headers=headers)

    assert empty.status_code == 400
    assert empty.json() == {"error": "Channel name is required"}
    assert long_name.status_code == 400
    assert bad_pin.json() == {"error": "PIN must be 1-4 digits"}


@pytest.mark.asyncio
async def test_join_token_flow(app, media) -> None:
    async with api_client(app) as client:
        headers = await login(client)
        created = await client.post("/api/channels", json={"name": "Locked", "pin": "1234"}, headers=headers)
        room_id = created.json()["roomId"]

        no_pin = await client.post(
            "/api/token", json={"username": "bob", "room": room_id, "deviceId": "abcdef99"}, headers=headers
        )
        ok = await client.post(
            "/api/token",
            json={"username": "bob", "room": room_id, "deviceId": "abcdef99", "pin": "1234"},
            headers=headers,
        )
        bad_name = await client.post(
            "/api/token", json={"username": "b@d!", "room": "ch-1", "deviceId": "x"}, headers=headers
        )
        unknown = await client.post(
            "/api/token", json={"username": "bob", "room": "custom-0-gone", "deviceId": "x"}, headers=headers
        )

    assert no_pin.status_code == 403
    assert ok.status_code == 200
    assert ok.json() == {"token": "jwt-for-bob-abcdef", "mediaEndpoint": "wss://media.example.test"}
    assert media.minted[-1]["room"] == room_id
    assert bad_name.status_code == 400
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_admin_change_pin_logs_everyone_out(app) -> None:
    async with api_client(app) as client:
        headers = await login(client)

        verify = await client.post("/api/admin/verify", json={"secret": ADMIN_SECRET})
        assert verify.json() == {"valid": True}

        changed = await client.post("/api/admin/change-pin", json={"secret": ADMIN_SECRET, "newPin": "8642"})
        assert changed.status_code == 200
        assert changed.json()["success"] is True

        rooms = await client.get("/api/rooms", headers=headers)
        assert rooms.status_code == 401
        check = await client.post("/api/verify-access-token", json={"accessToken": headers["x-access-token"]})
        assert check.json() == {"valid": False}

        relogin = await client.post("/api/verify-app-pin", json={"pin": "8642"})
        assert relogin.status_code == 200


@pytest.mark.asyncio
async def test_admin_guard_statuses(app) -> None:
    async with api_client(app) as client:
        short = await client.post("/api/admin/change-pin", json={"secret": ADMIN_SECRET, "newPin": "12"})
        wrong = await client.post("/api/admin/invalidate-tokens", json={"secret": "guess"})
        third = await client.post("/api/admin/verify", json={"secret": ADMIN_SECRET})
        limited = await client.post("/api/admin/verify", json={"secret": ADMIN_SECRET})

    assert short.status_code == 400
    assert wrong.status_code == 403
    assert wrong.json() == {"error": "Invalid admin secret"}
    assert third.status_code == 200
    assert limited.status_code == 429


@pytest.mark.asyncio
async def test_admin_disabled_without_secret(tmp_path, media) -> None:
    app = create_app(make_settings(tmp_path, admin_secret=""), media=media)

    async with api_client(app) as client:
        response = await client.post("/api/admin/verify", json={"secret": "anything"})

    assert response.status_code == 503
    assert response.json() == {"error": "Admin panel not configured"}


@pytest.mark.asyncio
async def test_admin_kick_all(app, media) -> None:
    media.rooms = {"ch-1": ["a-1"], "ch-4": ["b-2", "c-3"]}
    async with api_client(app) as client:
        response = await client.post("/api/admin/kick-all", json={"secret": ADMIN_SECRET})

    assert response.json() == {"success": True, "kicked": 3}


@pytest.mark.asyncio
async def test_admin_kick_all_upstream_failure(app, media) -> None:
    media.unavailable = True
    async with api_client(app) as client:
        response = await client.post("/api/admin/kick-all", json={"secret": ADMIN_SECRET})

    assert response.status_code == 500
    assert "error" in response.json()


@pytest.mark.asyncio
async def test_admin_invalidate_tokens(app) -> None:
    async with api_client(app) as client:
        headers = await login(client)
        response = await client.post("/api/admin/invalidate-tokens", json={"secret": ADMIN_SECRET})
        rooms = await client.get("/api/rooms", headers=headers)
        relogin = await client.post("/api/verify-app-pin", json={"pin": "1520"})

    assert response.json()["success"] is True
    assert rooms.status_code == 401
    assert relogin.status_code == 200


@pytest.mark.asyncio
async def test_oversized_body_is_rejected(app) -> None:
    async with api_client(app) as client:
        response = await client.post("/api/verify-app-pin", json={"pin": "1" * 20_000})

    assert response.status_code == 413


@pytest.mark.asyncio
async def test_malformed_json_is_a_400(app) -> None:
    async with api_client(app) as client:
        headers = await login(client)
        headers["content-type"] = "application/json"
        response = await client.post("/api/channels", content=b"{nope", headers=headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_origin_policy(app) -> None:
    client = TestClient(app)

    foreign = client.get("/api/health", headers={"Origin": "https://evil.example"})
    local = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
    packaged = client.get("/api/health")

    assert foreign.status_code == 403
    assert foreign.json() == {"error": "Not allowed by CORS"}
    assert local.status_code == 200
    assert local.headers.get("access-control-allow-origin") == "http://localhost:5173"
    assert packaged.status_code == 200


def test_lifespan_starts_and_stops_sweeper(app) -> None:
    with TestClient(app) as client:
        assert client.get("/api/health").status_code == 200


JSON_HEADERS = {"content-type": "application/json"}


@pytest.mark.asyncio
async def test_lone_surrogate_pin_is_a_wrong_pin(app) -> None:
    async with api_client(app) as client:
        response = await client.post("/api/verify-app-pin", content=b'{"pin": "\\ud800"}', headers=JSON_HEADERS)

    assert response.status_code == 403
    assert response.json() == {"error": "Invalid PIN"}


@pytest.mark.asyncio
async def test_crafted_access_tokens_are_invalid_not_errors(app) -> None:
    async with api_client(app) as client:
        huge = await client.post("/api/verify-access-token", json={"accessToken": "9" * 5000 + ".ab"})
        surrogate = await client.post(
            "/api/verify-access-token",
            content=b'{"accessToken": "99999999999999.\\udc00"}',
            headers=JSON_HEADERS,
        )
        header = await client.get("/api/rooms", headers={"x-access-token": "9" * 5000 + ".ab"})

    assert huge.status_code == 200
    assert huge.json() == {"valid": False}
    assert surrogate.status_code == 200
    assert surrogate.json() == {"valid": False}
    assert header.status_code == 401


@pytest.mark.asyncio
async def test_lone_surrogate_secrets_and_channel_pins_are_rejected(app) -> None:
    async with api_client(app) as client:
        headers = await login(client)
        created = await client.post("/api/channels", json={"name": "Locked", "pin": "42"}, headers=headers)
        room_id = created.json()["roomId"]

        admin = await client.post("/api/admin/verify", content=b'{"secret": "\\ud800"}', headers=JSON_HEADERS)
        channel = await client.post(
            "/api/channels/verify-pin",
            content=('{"roomId": "%s", "pin": "\\ud800"}' % room_id).encode(),
            headers={**headers, **JSON_HEADERS},
        )

    assert admin.status_code == 403
    assert admin.json() == {"error": "Invalid admin secret"}
    assert channel.status_code == 200
    assert channel.json() == {"valid": False}


@pytest.mark.asyncio
async def test_chunked_body_without_length_is_refused(app) -> None:
    async def body():
        yield b'{"pin": '
        yield b'"1520"}'

    async with api_client(app) as client:
        response = await client.post("/api/verify-app-pin", content=body(), headers=JSON_HEADERS)

    assert response.status_code == 411
    assert response.json() == {"error": "Content-Length required"}
