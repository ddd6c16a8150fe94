import httpx
import pytest
import pytest_asyncio

from studyroom.core.database import get_session
from studyroom.core.dependencies import get_clock
from studyroom.main import app
from studyroom.attendance.routers.jobs import get_session_factory

from conftest import MONDAY, admin_token, seed_student

ADMIN = {"Authorization": f"Bearer {admin_token()}"}


@pytest_asyncio.fixture
async def client(session_factory, clock):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def open_kiosk(client, student_id, pin="123456"):
    response = await client.post(
        "/api/v1/admin/pins/", json={"student_id": student_id, "pin": pin}, headers=ADMIN
    )
    assert response.status_code == 201
    response = await client.post(
        "/api/v1/admin/check-links/",
        json={"seat_layout_id": 10, "title": "Room 1"},
        headers=ADMIN,
    )
    assert response.status_code == 201
    return response.json()


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_pin_check_round_trip(client, session, clock):
    student, _, _ = await seed_student(session)
    link = await open_kiosk(client, student.id)
    assert link["link_url"].endswith(f"/attendance-check/{link['link_token']}")

    clock.set(MONDAY, "09:05")
    response = await client.post(
        f"/api/v1/attendance/check/{link['link_token']}", json={"pin": "123456"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["action"] == "checked_in"
    assert body["record"]["late_minutes"] == 5
    assert body["message"] == "Minji, check-in complete (5 min late)"

    clock.set(MONDAY, "12:00")
    response = await client.post(
        f"/api/v1/attendance/check/{link['link_token']}", json={"pin": "123456"}
    )
    assert response.json()["action"] == "checked_out"


async def test_wrong_pin_gets_a_generic_401(client, session, clock):
    student, _, _ = await seed_student(session)
    link = await open_kiosk(client, student.id)

    clock.set(MONDAY, "09:05")
    response = await client.post(
        f"/api/v1/attendance/check/{link['link_token']}",
        json={"pin": "654321", "student_id": student.id},
    )

    assert response.status_code == 401
    assert response.json()["error"] == "AUTHENTICATION_ERROR"
    assert response.json()["message"] == "PIN verification failed"


async def test_malformed_pin_is_not_echoed_back(client):
    response = await client.post("/api/v1/attendance/check/some-token", json={"pin": "12ab"})

    assert response.status_code == 422
    fields = response.json()["details"]["fields"]
    assert fields[0]["field"].endswith("pin")
    assert fields[0]["input"] is None


async def test_admin_routes_require_a_token(client):
    response = await client.get("/api/v1/admin/check-links/")

    assert response.status_code == 401


async def test_admin_cannot_see_another_tenants_record(client, session):
    other, _, _ = await seed_student(session, tenant_id=2, name="Jisoo")
    token = admin_token(tenant_id=2)
    response = await client.post(
        "/api/v1/admin/pins/",
        json={"student_id": other.id, "pin": "4321"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 201

    response = await client.get(f"/api/v1/admin/pins/{other.id}", headers=ADMIN)

    assert response.status_code == 404


async def test_timetable_replace_reports_propagation(client, session):
    student, timetable, _ = await seed_student(session)
    payload = {
        "student_id": student.id,
        "name": "Spring",
        "daily_schedules": {
            "monday": {
                "is_active": True,
                "time_slots": [
                    {"start_time": "10:00", "end_time": "12:00", "subject": "Art", "type": "class"}
                ],
            }
        },
    }

    response = await client.put(
        f"/api/v1/admin/timetables/{timetable.id}", json=payload, headers=ADMIN
    )

    assert response.status_code == 200
    assert response.json()["schedule_changed"] is True
    assert response.json()["assignments_refreshed"] == 1


async def test_timetable_slots_must_end_after_they_start(client, session):
    student, timetable, _ = await seed_student(session)
    payload = {
        "student_id": student.id,
        "daily_schedules": {
            "monday": {
                "time_slots": [
                    {"start_time": "12:00", "end_time": "09:00", "type": "class"}
                ]
            }
        },
    }

    response = await client.put(
        f"/api/v1/admin/timetables/{timetable.id}", json=payload, headers=ADMIN
    )

    assert response.status_code == 422


async def test_excusing_a_record(client, session, clock):
    student, _, _ = await seed_student(session)
    link = await open_kiosk(client, student.id)
    clock.set(MONDAY, "09:00")
    checked = await client.post(
        f"/api/v1/attendance/check/{link['link_token']}", json={"pin": "123456"}
    )
    record_id = checked.json()["record"]["id"]

    response = await client.post(
        f"/api/v1/admin/records/{record_id}/excuse",
        json={"reason": "hospital", "note": "left early"},
        headers=ADMIN,
    )

    assert response.status_code == 200
    assert response.json()["record"]["status"] == "absent_excused"
    assert response.json()["record"]["excused_reason"] == "hospital"


@pytest.mark.parametrize("role,expected", [("admin", 403), ("operator", 200)])
async def test_job_trigger_needs_the_operator_role(client, session, clock, role, expected):
    await seed_student(session)
    clock.set(MONDAY, "02:00")

    response = await client.post(
        "/api/v1/admin/jobs/generate_daily_records/run",
        headers={"Authorization": f"Bearer {admin_token(role=role)}"},
    )

    assert response.status_code == expected
    if expected == 200:
        assert response.json()["created"] == 2
        assert response.json()["date"] == "2026-03-02"
