"""
Live WebSocket endpoint tests.

Starlette's TestClient runs the app on its own event loop in a worker
thread, so the socket and the HTTP writes below meet only through the
change feed.
"""

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ambulance_backend.app.core.change_feed import change_feed
from ambulance_backend.app.core.jwt import create_access_token
from ambulance_backend.app.main import app
from conftest import auth_headers


def token_for(user) -> str:
    return create_access_token({"sub": user.id, "role": user.role.value})


@pytest.fixture
def live_client():
    return TestClient(app)


@pytest.mark.asyncio
async def test_assigned_ambulances_socket_pushes_after_assign(live_client, make_driver, make_ambulance, make_hospital_user):
    driver = await make_driver(assigned=[])
    ambulance = await make_ambulance()
    staff = await make_hospital_user()
    baseline = change_feed.subscriber_count

    with live_client.websocket_connect(f"/v1/live/drivers/{driver.id}/ambulances?token={token_for(driver)}") as ws:
        assert ws.receive_json() == []

        response = live_client.put(f"/v1/drivers/{driver.id}/ambulances/{ambulance.id}", headers=auth_headers(staff))
        assert response.status_code == 200

        snapshot = ws.receive_json()
        assert [a["id"] for a in snapshot] == [ambulance.id]
        assert snapshot[0]["license_plate"] == ambulance.license_plate

    assert change_feed.subscriber_count == baseline


@pytest.mark.asyncio
async def test_fleet_socket_sends_current_fleet(live_client, make_ambulance, make_hospital_user):
    ambulance = await make_ambulance()
    await make_ambulance(hospital_id="hospital-2")
    staff = await make_hospital_user()

    with live_client.websocket_connect(f"/v1/live/hospitals/hospital-1/ambulances?token={token_for(staff)}") as ws:
        assert [a["id"] for a in ws.receive_json()] == [ambulance.id]


def test_socket_rejects_bad_token(live_client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with live_client.websocket_connect("/v1/live/drivers/driver-1/ambulances?token=not-a-jwt"):
            pass

    assert exc_info.value.code == 1008


def test_socket_rejects_missing_token(live_client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with live_client.websocket_connect("/v1/live/hospitals/hospital-1/drivers"):
            pass

    assert exc_info.value.code == 1008


@pytest.mark.asyncio
async def test_driver_cannot_watch_another_drivers_ambulances(live_client, make_driver):
    driver = await make_driver()
    other = await make_driver()

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with live_client.websocket_connect(f"/v1/live/drivers/{other.id}/ambulances?token={token_for(driver)}"):
            pass

    assert exc_info.value.code == 1008


@pytest.mark.asyncio
async def test_staff_cannot_watch_another_hospital(live_client, make_hospital_user):
    staff = await make_hospital_user(hospital_id="hospital-2")

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with live_client.websocket_connect(f"/v1/live/hospitals/hospital-1/drivers?token={token_for(staff)}"):
            pass

    assert exc_info.value.code == 1008
