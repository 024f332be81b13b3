from datetime import UTC, date, datetime

import pytest
from sqlalchemy import func, select

from clinic_scheduler.core.errors import ConflictBlocked, ScheduleValidationError, TimeOffNotFound
from clinic_scheduler.models import Appointment, AppointmentStatus, DoctorTimeOff, Slot, TimeOffCreate, TimeOffType
from clinic_scheduler.services.bulk_regenerator import RegenerationScope, regenerate
from clinic_scheduler.services.schedule_service import create_time_off, delete_time_off, get_doctor_schedule

NOW = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)
MONDAY = date(2026, 10, 19)
VACATION = TimeOffCreate(start_date=MONDAY, end_date=date(2026, 10, 21), type=TimeOffType.VACATION, reason="Conference")


async def _count(session, model, *where) -> int:
    result = await session.execute(select(func.count()).select_from(model).where(*where))
    return int(result.scalar_one())


async def test_booked_appointment_blocks_time_off(morning_doctor, book, session):
    doctor = await morning_doctor()
    appt = await book(doctor, datetime(2026, 10, 19, 9, 30, tzinfo=UTC))
    doctor_id, appt_id = doctor.id, appt.id

    with pytest.raises(ConflictBlocked) as exc_info:
        await create_time_off(session, doctor.clinic_id, doctor.id, VACATION, NOW)

    assert [c.appointment_id for c in exc_info.value.conflicts] == [appt_id]
    await session.rollback()
    assert await _count(session, DoctorTimeOff, DoctorTimeOff.doctor_id == doctor_id) == 0


async def test_forced_time_off_cancels_and_clears_slots(morning_doctor, book, session, session_factory):
    doctor = await morning_doctor()
    await regenerate(session_factory, RegenerationScope(doctor_id=doctor.id), date(2026, 10, 18), date(2026, 10, 31), now=NOW)
    appt = await book(doctor, datetime(2026, 10, 19, 9, 30, tzinfo=UTC))

    result = await create_time_off(
        session, doctor.clinic_id, doctor.id, VACATION.model_copy(update={"force_cancel": True}), NOW
    )
    await session.commit()

    assert result.cancelled_appointment_ids == [appt.id]
    assert result.slots_changed == 6
    assert result.time_off.type == TimeOffType.VACATION
    status = await session.execute(select(Appointment.status).where(Appointment.id == appt.id))
    assert status.scalar_one() == AppointmentStatus.CANCELLED
    assert await _count(session, Slot, Slot.doctor_id == doctor.id) == 6

    schedule = await get_doctor_schedule(session, doctor.clinic_id, doctor.id)
    assert [(t.start_date, t.end_date) for t in schedule.time_off] == [(MONDAY, date(2026, 10, 21))]


async def test_deleting_time_off_restores_slots(morning_doctor, session, session_factory):
    doctor = await morning_doctor()
    await regenerate(session_factory, RegenerationScope(doctor_id=doctor.id), date(2026, 10, 18), date(2026, 10, 31), now=NOW)
    created = await create_time_off(session, doctor.clinic_id, doctor.id, VACATION, NOW)
    await session.commit()
    assert await _count(session, Slot, Slot.doctor_id == doctor.id) == 6

    result = await delete_time_off(session, doctor.clinic_id, doctor.id, created.time_off.id, NOW)
    await session.commit()

    assert result.slots_changed == 6
    assert await _count(session, Slot, Slot.doctor_id == doctor.id) == 12
    assert await _count(session, DoctorTimeOff, DoctorTimeOff.doctor_id == doctor.id) == 0


async def test_deleting_time_off_before_activation_restores_nothing(morning_doctor, session):
    doctor = await morning_doctor()
    created = await create_time_off(session, doctor.clinic_id, doctor.id, VACATION, NOW)
    await session.commit()

    result = await delete_time_off(session, doctor.clinic_id, doctor.id, created.time_off.id, NOW)

    assert result.slots_changed == 0


async def test_reversed_range_is_rejected(morning_doctor, session):
    doctor = await morning_doctor()

    with pytest.raises(ScheduleValidationError):
        await create_time_off(
            session, doctor.clinic_id, doctor.id, TimeOffCreate(start_date=MONDAY, end_date=date(2026, 10, 1)), NOW
        )


async def test_unknown_time_off(morning_doctor, session):
    doctor = await morning_doctor()

    with pytest.raises(TimeOffNotFound):
        await delete_time_off(session, doctor.clinic_id, doctor.id, 999, NOW)
