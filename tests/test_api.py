from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from clinic_scheduler.api.deps import get_now, get_session, get_session_factory
from clinic_scheduler.main import app

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)


@pytest.fixture
async def client(session_factory):
    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_now] = lambda: NOW
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _base(doctor) -> str:
    return f"/api/v1/clinics/{doctor.clinic_id}/doctors/{doctor.id}"


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


async def test_day_slots(client, morning_doctor, book):
    doctor = await morning_doctor()
    appt = await book(doctor, datetime(2026, 10, 19, 9, 0, tzinfo=UTC))

    r = await client.get(f"{_base(doctor)}/slots", params={"date": "2026-10-19"})

    assert r.status_code == 200
    data = r.json()
    assert data["date"] == "2026-10-19"
    assert [s["time"] for s in data["slots"]] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert data["slots"][0]["status"] == "BOOKED"
    assert data["slots"][0]["appointment_id"] == appt.id
    assert data["slots"][1]["is_available"] is True


async def test_range_and_summary(client, morning_doctor):
    doctor = await morning_doctor()
    params = {"start_date": "2026-10-18", "end_date": "2026-10-26"}

    r = await client.get(f"{_base(doctor)}/slots/range", params=params)
    assert r.status_code == 200
    assert len(r.json()["days"]) == 9

    r = await client.get(f"{_base(doctor)}/slots/summary", params=params)
    assert r.status_code == 200
    assert r.json()["total_slots"] == 12
    assert r.json()["working_days"] == 2


async def test_range_too_long(client, morning_doctor):
    doctor = await morning_doctor()

    r = await client.get(
        f"{_base(doctor)}/slots/range", params={"start_date": "2026-10-01", "end_date": "2026-12-01"}
    )

    assert r.status_code == 400


async def test_unknown_doctor_is_404(client, morning_doctor):
    doctor = await morning_doctor()

    r = await client.get(f"/api/v1/clinics/{doctor.clinic_id}/doctors/999/schedule")

    assert r.status_code == 404


async def test_read_schedule_lists_every_weekday(client, morning_doctor):
    doctor = await morning_doctor()

    r = await client.get(f"{_base(doctor)}/schedule")

    assert r.status_code == 200
    data = r.json()
    assert len(data["weekly"]) == 7
    assert data["weekly"][1]["shifts"] == {"MORNING": True, "EVENING": False}
    assert data["shift_template"]["MORNING"] == {"start": "09:00", "end": "12:00"}
    assert data["shift_template"]["EVENING"] is None


async def test_check_then_resolve_conflicts(client, morning_doctor, book):
    doctor = await morning_doctor()
    appt = await book(doctor, datetime(2026, 10, 19, 10, 0, tzinfo=UTC))
    body = {"appointment_duration_min": 45}

    r = await client.post(f"{_base(doctor)}/schedule/check-conflicts", json=body)
    assert r.status_code == 200
    assert r.json()["total_conflicts"] == 1
    assert r.json()["conflicting_appointments"][0]["reason"] == "DURATION_MISMATCH"

    r = await client.put(f"{_base(doctor)}/schedule/with-conflicts", json=body)
    assert r.status_code == 409
    assert [c["appointment_id"] for c in r.json()["conflicts"]] == [appt.id]

    r = await client.put(f"{_base(doctor)}/schedule/with-conflicts", json={**body, "cancel_conflicting": True})
    assert r.status_code == 200
    assert r.json()["cancelled_appointment_ids"] == [appt.id]
    assert r.json()["schedule"]["appointment_duration_min"] == 45

    r = await client.post(f"{_base(doctor)}/schedule/check-conflicts", json=body)
    assert r.json()["has_conflicts"] is False


async def test_invalid_clock_is_422(client, morning_doctor):
    doctor = await morning_doctor()

    r = await client.post(
        f"{_base(doctor)}/schedule/check-conflicts",
        json={"shift_template": {"MORNING": {"start": "25:00", "end": "12:00"}}},
    )

    assert r.status_code == 422


async def test_time_off_lifecycle(client, morning_doctor):
    doctor = await morning_doctor()

    r = await client.post(
        f"{_base(doctor)}/time-off",
        json={"start_date": "2026-10-19", "end_date": "2026-10-19", "type": "BREAK"},
    )
    assert r.status_code == 201
    time_off_id = r.json()["time_off"]["id"]

    r = await client.get(f"{_base(doctor)}/slots", params={"date": "2026-10-19"})
    assert r.json()["slots"] == []

    r = await client.delete(f"{_base(doctor)}/time-off/{time_off_id}")
    assert r.status_code == 200

    r = await client.delete(f"{_base(doctor)}/time-off/{time_off_id}")
    assert r.status_code == 404


async def test_admin_regenerate(client, morning_doctor):
    doctor = await morning_doctor()
    body = {"doctor_id": doctor.id, "start_date": "2026-10-18", "end_date": "2026-11-01"}

    first = await client.post("/api/v1/admin/slots/regenerate", json=body)
    second = await client.post("/api/v1/admin/slots/regenerate", json=body)

    assert first.status_code == 200
    assert first.json()["total_created"] == 12
    assert first.json()["succeeded"] == 1
    assert second.json()["total_created"] == 12


async def test_admin_regenerate_needs_one_target(client):
    r = await client.post("/api/v1/admin/slots/regenerate", json={"start_date": "2026-10-18"})

    assert r.status_code == 422
