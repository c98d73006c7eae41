"""
API tests.

Validates authentication, hospital scoping and the HTTP surface of the
ledger, directory and registry.
"""

import pytest
from sqlalchemy import select

from ambulance_backend.app.models.ambulance import Ambulance
from ambulance_backend.app.models.audit_log import AuditLog
from ambulance_backend.app.models.enums import AmbulanceStatus, UserRole
from ambulance_backend.app.models.user import User
from conftest import auth_headers, reload


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["redis"] == "disabled"


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client):
    response = await client.get("/", headers={"X-Correlation-ID": "trace-42"})
    assert response.headers["X-Correlation-ID"] == "trace-42"
    assert "X-Process-Time" in response.headers


@pytest.mark.asyncio
async def test_missing_token_is_rejected(client):
    response = await client.get("/v1/drivers/driver-1")
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(client):
    ghost = User(id="ghost", role=UserRole.HOSPITAL_ADMIN)
    response = await client.get("/v1/drivers/driver-1", headers=auth_headers(ghost))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_forbidden(client, make_hospital_user):
    staff = await make_hospital_user(is_active=False)
    response = await client.get("/v1/hospitals/hospital-1/drivers", headers=auth_headers(staff))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_assign_and_unassign_via_api(client, db_session, make_hospital_user, make_driver, make_ambulance):
    staff = await make_hospital_user()
    driver = await make_driver()
    ambulance = await make_ambulance(status=AmbulanceStatus.AVAILABLE)

    response = await client.put(
        f"/v1/drivers/{driver.id}/ambulances/{ambulance.id}", headers=auth_headers(staff)
    )
    assert response.status_code == 200
    data = response.json()
    assert data["assigned_ambulances"] == [ambulance.id]
    assert data["current_driver_id"] == driver.id
    assert data["ambulance_status"] == AmbulanceStatus.AVAILABLE.value

    result = await db_session.execute(select(AuditLog).where(AuditLog.driver_id == driver.id))
    logs = result.scalars().all()
    assert [log.action for log in logs] == ["AMBULANCE_ASSIGNED"]
    assert logs[0].actor_id == staff.id

    response = await client.delete(
        f"/v1/drivers/{driver.id}/ambulances/{ambulance.id}", headers=auth_headers(staff)
    )
    assert response.status_code == 200
    assert response.json()["assigned_ambulances"] == []
    assert response.json()["ambulance_status"] == AmbulanceStatus.OFFLINE.value

    ambulance = await reload(db_session, Ambulance, ambulance.id)
    assert ambulance.current_driver_id is None


@pytest.mark.asyncio
async def test_assign_to_unknown_driver_returns_not_found(client, make_hospital_user, make_ambulance):
    staff = await make_hospital_user()
    ambulance = await make_ambulance()

    response = await client.put(
        f"/v1/drivers/ghost/ambulances/{ambulance.id}", headers=auth_headers(staff)
    )

    assert response.status_code == 404
    body = response.json()
    assert body["error_code"] == "ERR_NOT_FOUND_002"
    assert body["message"] == "Driver not found"


@pytest.mark.asyncio
async def test_assign_unknown_ambulance_returns_not_found(client, make_hospital_user, make_driver):
    staff = await make_hospital_user()
    driver = await make_driver()

    response = await client.put(
        f"/v1/drivers/{driver.id}/ambulances/missing", headers=auth_headers(staff)
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_drivers_cannot_assign(client, make_driver, make_ambulance):
    driver = await make_driver()
    ambulance = await make_ambulance()

    response = await client.put(
        f"/v1/drivers/{driver.id}/ambulances/{ambulance.id}", headers=auth_headers(driver)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_staff_cannot_touch_another_hospitals_fleet(client, make_hospital_user, make_driver, make_ambulance):
    outsider = await make_hospital_user(hospital_id="hospital-2")
    driver = await make_driver()
    ambulance = await make_ambulance(hospital_id="hospital-1")

    response = await client.put(
        f"/v1/drivers/{driver.id}/ambulances/{ambulance.id}", headers=auth_headers(outsider)
    )
    assert response.status_code == 403

    response = await client.get("/v1/hospitals/hospital-1/drivers", headers=auth_headers(outsider))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_driver_switches_own_ambulance(client, db_session, make_driver, make_ambulance):
    driver = await make_driver()
    current = await make_ambulance(status=AmbulanceStatus.ON_DUTY, current_driver_id=driver.id)
    spare = await make_ambulance(status=AmbulanceStatus.OFFLINE)

    response = await client.post(
        f"/v1/drivers/{driver.id}/switch",
        json={"from_ambulance_id": current.id, "to_ambulance_id": spare.id},
        headers=auth_headers(driver),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["from_status"] == AmbulanceStatus.OFFLINE.value
    assert data["to_status"] == AmbulanceStatus.AVAILABLE.value

    spare = await reload(db_session, Ambulance, spare.id)
    assert spare.current_driver_id == driver.id


@pytest.mark.asyncio
async def test_driver_cannot_switch_for_someone_else(client, make_driver, make_ambulance):
    driver = await make_driver()
    other = await make_driver()
    current = await make_ambulance(current_driver_id=other.id)
    spare = await make_ambulance()

    response = await client.post(
        f"/v1/drivers/{other.id}/switch",
        json={"from_ambulance_id": current.id, "to_ambulance_id": spare.id},
        headers=auth_headers(driver),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_driver_cannot_switch_out_of_a_foreign_ambulance(client, db_session, make_driver, make_ambulance):
    driver = await make_driver()
    victim = await make_driver()
    mine = await make_ambulance(status=AmbulanceStatus.OFFLINE)
    foreign = await make_ambulance(
        status=AmbulanceStatus.ON_DUTY, hospital_id="hospital-2", current_driver_id=victim.id
    )

    response = await client.post(
        f"/v1/drivers/{driver.id}/switch",
        json={"from_ambulance_id": foreign.id, "to_ambulance_id": mine.id},
        headers=auth_headers(driver),
    )

    assert response.status_code == 403
    foreign = await reload(db_session, Ambulance, foreign.id)
    assert foreign.status == AmbulanceStatus.ON_DUTY.value
    assert foreign.current_driver_id == victim.id


@pytest.mark.asyncio
async def test_driver_cannot_take_over_an_operated_ambulance(client, db_session, make_driver, make_ambulance):
    driver = await make_driver()
    colleague = await make_driver()
    current = await make_ambulance(current_driver_id=driver.id)
    taken = await make_ambulance(status=AmbulanceStatus.ON_DUTY, current_driver_id=colleague.id)

    response = await client.post(
        f"/v1/drivers/{driver.id}/switch",
        json={"from_ambulance_id": current.id, "to_ambulance_id": taken.id},
        headers=auth_headers(driver),
    )

    assert response.status_code == 403
    taken = await reload(db_session, Ambulance, taken.id)
    assert taken.current_driver_id == colleague.id


@pytest.mark.asyncio
async def test_driver_cannot_switch_into_another_hospital(client, make_driver, make_ambulance):
    driver = await make_driver()
    current = await make_ambulance(hospital_id="hospital-1", current_driver_id=driver.id)
    elsewhere = await make_ambulance(hospital_id="hospital-2")

    response = await client.post(
        f"/v1/drivers/{driver.id}/switch",
        json={"from_ambulance_id": current.id, "to_ambulance_id": elsewhere.id},
        headers=auth_headers(driver),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_driver_switches_out_of_an_assigned_ambulance(client, make_driver, make_ambulance):
    held = await make_ambulance(status=AmbulanceStatus.OFFLINE)
    spare = await make_ambulance(status=AmbulanceStatus.OFFLINE)
    driver = await make_driver(assigned=[held.id])

    response = await client.post(
        f"/v1/drivers/{driver.id}/switch",
        json={"from_ambulance_id": held.id, "to_ambulance_id": spare.id},
        headers=auth_headers(driver),
    )

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_driver_toggles_availability(client, db_session, make_driver):
    driver = await make_driver(is_available=True)

    response = await client.patch(
        f"/v1/drivers/{driver.id}/availability",
        json={"is_available": False},
        headers=auth_headers(driver),
    )

    assert response.status_code == 200
    assert response.json()["is_available"] is False

    driver = await reload(db_session, User, driver.id)
    assert driver.is_available is False


@pytest.mark.asyncio
async def test_driver_views_own_ambulances_and_stats(client, make_driver, make_ambulance):
    first = await make_ambulance(status=AmbulanceStatus.ON_DUTY)
    second = await make_ambulance(status=AmbulanceStatus.AVAILABLE)
    driver = await make_driver(assigned=[first.id, second.id, "gone"])

    response = await client.get(f"/v1/drivers/{driver.id}/ambulances", headers=auth_headers(driver))
    assert response.status_code == 200
    assert [a["id"] for a in response.json()] == [first.id, second.id]

    response = await client.get(f"/v1/drivers/{driver.id}/stats", headers=auth_headers(driver))
    assert response.status_code == 200
    assert response.json()["total_ambulances"] == 3
    assert response.json()["on_duty_ambulances"] == 1
    assert response.json()["available_ambulances"] == 1


@pytest.mark.asyncio
async def test_hospital_driver_listings(client, make_hospital_user, make_driver, make_ambulance):
    staff = await make_hospital_user()
    busy = await make_ambulance(status=AmbulanceStatus.ON_DUTY)
    working = await make_driver(assigned=[busy.id])
    idle = await make_driver(assigned=[])

    response = await client.get("/v1/hospitals/hospital-1/drivers", headers=auth_headers(staff))
    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == [working.id]

    response = await client.get("/v1/hospitals/hospital-1/drivers/available", headers=auth_headers(staff))
    assert response.status_code == 200
    assert [d["id"] for d in response.json()] == [idle.id]


@pytest.mark.asyncio
async def test_register_ambulance_rejects_duplicate_plate(client, make_hospital_user):
    admin = await make_hospital_user(role=UserRole.HOSPITAL_ADMIN)
    payload = {"license_plate": "KA-05-MX-2020", "model": "Force Traveller"}

    response = await client.post("/v1/hospitals/hospital-1/ambulances", json=payload, headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.json()["status"] == AmbulanceStatus.OFFLINE.value

    response = await client.post("/v1/hospitals/hospital-1/ambulances", json=payload, headers=auth_headers(admin))
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT_001"


@pytest.mark.asyncio
async def test_operating_driver_reports_location(client, make_driver, make_ambulance):
    driver = await make_driver()
    stranger = await make_driver()
    ambulance = await make_ambulance(current_driver_id=driver.id)

    response = await client.patch(
        f"/v1/ambulances/{ambulance.id}/location",
        json={"latitude": 12.93, "longitude": 77.62},
        headers=auth_headers(driver),
    )
    assert response.status_code == 200
    assert response.json()["latitude"] == 12.93

    response = await client.patch(
        f"/v1/ambulances/{ambulance.id}/location",
        json={"latitude": 12.93, "longitude": 77.62},
        headers=auth_headers(stranger),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_assignment_history_is_admin_only(client, make_hospital_user, make_driver, make_ambulance):
    admin = await make_hospital_user(role=UserRole.HOSPITAL_ADMIN)
    staff = await make_hospital_user()
    driver = await make_driver()
    ambulance = await make_ambulance()

    await client.put(f"/v1/drivers/{driver.id}/ambulances/{ambulance.id}", headers=auth_headers(staff))

    response = await client.get(f"/v1/drivers/{driver.id}/history", headers=auth_headers(staff))
    assert response.status_code == 403

    response = await client.get(f"/v1/drivers/{driver.id}/history", headers=auth_headers(admin))
    assert response.status_code == 200
    history = response.json()
    assert [entry["action"] for entry in history] == ["AMBULANCE_ASSIGNED"]
    assert history[0]["actor_id"] == staff.id
