from datetime import UTC, datetime, timedelta

import pytest

from clinic_scheduler.core.db import build_engine, build_session_maker, init_db
from clinic_scheduler.models import (
    Appointment,
    AppointmentStatus,
    Clinic,
    Doctor,
    DoctorShiftTemplate,
    DoctorWeeklyShift,
    Patient,
    ShiftType,
)


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(target=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_doctor(session):
    """Clinic + doctor with a committed schedule. `weekly` maps day_of_week to enabled shifts."""

    async def _make(
        timezone: str = "UTC",
        duration: int = 30,
        templates: dict[ShiftType, tuple[str, str]] | None = None,
        weekly: dict[int, list[ShiftType]] | None = None,
        has_license: bool = True,
    ) -> Doctor:
        clinic = Clinic(name="Central Clinic", timezone=timezone)
        session.add(clinic)
        await session.flush()
        doctor = Doctor(
            clinic_id=clinic.id,
            full_name="Dr. Ada Park",
            appointment_duration_min=duration,
            has_license=has_license,
        )
        session.add(doctor)
        await session.flush()
        for shift_type, (start, end) in (templates or {}).items():
            session.add(
                DoctorShiftTemplate(
                    clinic_id=clinic.id,
                    doctor_id=doctor.id,
                    shift_type=shift_type,
                    start_time=start,
                    end_time=end,
                )
            )
        for day, shift_types in (weekly or {}).items():
            for shift_type in shift_types:
                session.add(
                    DoctorWeeklyShift(
                        clinic_id=clinic.id,
                        doctor_id=doctor.id,
                        day_of_week=day,
                        shift_type=shift_type,
                        is_enabled=True,
                    )
                )
        await session.commit()
        return doctor

    return _make


@pytest.fixture
def morning_doctor(make_doctor):
    """UTC doctor, 30 minute visits, MORNING 09:00-12:00 on Mondays."""

    async def _make(**kwargs) -> Doctor:
        kwargs.setdefault("templates", {ShiftType.MORNING: ("09:00", "12:00")})
        kwargs.setdefault("weekly", {1: [ShiftType.MORNING]})
        return await make_doctor(**kwargs)

    return _make


@pytest.fixture
def book(session):
    async def _book(
        doctor: Doctor,
        starts_at: datetime,
        minutes: int = 30,
        patient_name: str = "Maria Lopez",
        status: AppointmentStatus = AppointmentStatus.BOOKED,
    ) -> Appointment:
        patient = Patient(clinic_id=doctor.clinic_id, full_name=patient_name, phone="+15550100")
        session.add(patient)
        await session.flush()
        appointment = Appointment(
            clinic_id=doctor.clinic_id,
            doctor_id=doctor.id,
            patient_id=patient.id,
            starts_at=starts_at.astimezone(UTC).replace(tzinfo=None),
            ends_at=(starts_at + timedelta(minutes=minutes)).astimezone(UTC).replace(tzinfo=None),
            status=status,
        )
        session.add(appointment)
        await session.commit()
        return appointment

    return _book
