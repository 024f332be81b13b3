from datetime import UTC, date, datetime

import pytest
from sqlalchemy import func, select

from clinic_scheduler.models import Appointment, Doctor, ShiftType, Slot, TimeOffCreate
from clinic_scheduler.services import bulk_regenerator
from clinic_scheduler.services.bulk_regenerator import RegenerationScope, regenerate, regenerate_all
from clinic_scheduler.services.schedule_service import create_time_off

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)
START = date(2026, 10, 18)
END = date(2026, 11, 1)  # two Mondays: the 19th and the 26th


async def _slot_count(session_factory, doctor_id: int) -> int:
    async with session_factory() as s:
        result = await s.execute(select(func.count()).select_from(Slot).where(Slot.doctor_id == doctor_id))
        return int(result.scalar_one())


async def test_second_run_adds_no_rows(morning_doctor, session_factory):
    doctor = await morning_doctor()
    scope = RegenerationScope(doctor_id=doctor.id)

    first = await regenerate(session_factory, scope, START, END, now=NOW)
    second = await regenerate(session_factory, scope, START, END, now=NOW)
    third = await regenerate(session_factory, scope, START, END, rebuild=False, now=NOW)

    assert first.total_created == 12
    assert second.total_created == 12
    assert third.total_created == 0
    assert await _slot_count(session_factory, doctor.id) == 12


async def test_small_batches_write_everything(morning_doctor, session_factory):
    doctor = await morning_doctor()

    report = await regenerate(session_factory, RegenerationScope(doctor_id=doctor.id), START, END, batch_size=5, now=NOW)

    assert report.total_created == 12
    assert await _slot_count(session_factory, doctor.id) == 12


async def test_records_range_and_stamps_configuration_once(morning_doctor, session_factory):
    doctor = await morning_doctor()
    scope = RegenerationScope(doctor_id=doctor.id)

    await regenerate(session_factory, scope, START, END, now=NOW)
    await regenerate(session_factory, scope, START, END, now=datetime(2026, 10, 20, tzinfo=UTC))

    async with session_factory() as s:
        stored = await s.get(Doctor, doctor.id)
    assert stored.schedule_configured_at == datetime(2026, 10, 18, 8, 0)
    assert stored.slots_generated_from == START
    assert stored.slots_generated_to == END


async def test_unconfigured_doctor_is_skipped(make_doctor, session_factory):
    doctor = await make_doctor(templates={ShiftType.MORNING: ("09:00", "12:00")}, weekly={})

    report = await regenerate(session_factory, RegenerationScope(clinic_id=doctor.clinic_id), START, END, now=NOW)

    assert report.skipped == 1
    assert report.failed == 0
    assert report.doctors[0].skipped
    async with session_factory() as s:
        stored = await s.get(Doctor, doctor.id)
    assert stored.schedule_configured_at is None


async def test_time_off_days_are_not_written(morning_doctor, session, session_factory):
    doctor = await morning_doctor()
    await create_time_off(
        session, doctor.clinic_id, doctor.id, TimeOffCreate(start_date=date(2026, 10, 26), end_date=date(2026, 10, 26)), NOW
    )
    await session.commit()

    report = await regenerate(session_factory, RegenerationScope(doctor_id=doctor.id), START, END, now=NOW)

    assert report.total_created == 6


async def test_one_failure_does_not_stop_the_clinic(make_doctor, session, session_factory, monkeypatch):
    first = await make_doctor(templates={ShiftType.MORNING: ("09:00", "12:00")}, weekly={1: [ShiftType.MORNING]})
    second = Doctor(clinic_id=first.clinic_id, full_name="Dr. Second", appointment_duration_min=30)
    session.add(second)
    await session.commit()

    real = bulk_regenerator.load_schedule_config

    async def flaky(s, doctor):
        if doctor.id == second.id:
            raise RuntimeError("boom")
        return await real(s, doctor)

    monkeypatch.setattr(bulk_regenerator, "load_schedule_config", flaky)

    report = await regenerate(session_factory, RegenerationScope(clinic_id=first.clinic_id), START, END, now=NOW)

    assert report.failed == 1
    assert report.succeeded == 1
    failed = next(d for d in report.doctors if not d.success)
    assert failed.doctor_id == second.id
    assert "boom" in failed.error
    assert await _slot_count(session_factory, first.id) == 12


async def test_appointments_are_never_touched(morning_doctor, book, session_factory):
    doctor = await morning_doctor()
    await book(doctor, datetime(2026, 10, 19, 10, 0, tzinfo=UTC))

    await regenerate(session_factory, RegenerationScope(doctor_id=doctor.id), START, END, now=NOW)

    async with session_factory() as s:
        result = await s.execute(select(func.count()).select_from(Appointment))
        assert result.scalar_one() == 1


async def test_regenerate_all_covers_licensed_doctors_to_year_end(make_doctor, session_factory):
    licensed = await make_doctor(templates={ShiftType.MORNING: ("09:00", "10:00")}, weekly={1: [ShiftType.MORNING]})
    unlicensed = await make_doctor(
        templates={ShiftType.MORNING: ("09:00", "10:00")}, weekly={1: [ShiftType.MORNING]}, has_license=False
    )

    reports = await regenerate_all(session_factory, now=NOW)

    assert [r.end_date for r in reports] == [date(2026, 12, 31), date(2026, 12, 31)]
    # Mondays from Oct 19 through Dec 28: 11 of them, two slots each
    assert await _slot_count(session_factory, licensed.id) == 22
    assert await _slot_count(session_factory, unlicensed.id) == 0


def test_scope_needs_exactly_one_target():
    with pytest.raises(ValueError):
        RegenerationScope()
    with pytest.raises(ValueError):
        RegenerationScope(clinic_id=1, doctor_id=2)


async def test_default_start_is_the_clinic_local_today(morning_doctor, session_factory):
    doctor = await morning_doctor(timezone="America/New_York")
    # 02:00 UTC on Oct 20 is still Monday Oct 19 in New York
    late_evening = datetime(2026, 10, 20, 2, 0, tzinfo=UTC)

    report = await regenerate(session_factory, RegenerationScope(doctor_id=doctor.id), now=late_evening)

    assert report.start_date == date(2026, 10, 19)
    assert report.end_date == date(2026, 12, 31)


async def test_regenerate_all_drops_stale_rows_outside_the_new_range(morning_doctor, session_factory):
    doctor = await morning_doctor()
    doctor_id = doctor.id
    await regenerate(session_factory, RegenerationScope(doctor_id=doctor_id), date(2026, 10, 5), date(2026, 10, 12), now=NOW)
    await regenerate(session_factory, RegenerationScope(doctor_id=doctor_id), date(2027, 1, 4), date(2027, 1, 4), now=NOW)
    assert await _slot_count(session_factory, doctor_id) == 18

    await regenerate_all(session_factory, now=NOW)

    async with session_factory() as s:
        result = await s.execute(select(Slot.slot_date).where(Slot.doctor_id == doctor_id))
        dates = set(result.scalars().all())
    assert min(dates) == date(2026, 10, 19)
    assert max(dates) == date(2026, 12, 28)
    # Mondays from Oct 19 through Dec 28: 11 of them, six slots each
    assert await _slot_count(session_factory, doctor_id) == 66
