import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import (
    ConflictBlocked,
    DoctorNotFound,
    ScheduleValidationError,
    TimeOffNotFound,
    TransactionFailure,
)
from clinic_scheduler.core.timezone import clinic_today, start_of_local_day
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.schedule import (
    ConflictCheckResult,
    ConflictReason,
    DoctorSchedule,
    DoctorShiftTemplate,
    DoctorTimeOff,
    DoctorWeeklyShift,
    ScheduleChanges,
    ScheduleConfig,
    ShiftType,
    ShiftWindow,
    TimeOffCreate,
    TimeOffPeriod,
    TimeOffResult,
    WeeklyShift,
    WeeklyShiftChange,
)
from clinic_scheduler.services.appointment_service import cancel_appointments, list_booked_appointments
from clinic_scheduler.services.conflict_detector import detect_conflicts, merge_schedule_changes, to_conflict
from clinic_scheduler.services.slot_compiler import window_minutes
from clinic_scheduler.services.slot_store import compile_window, delete_slots_in_range, persist_slots

logger = logging.getLogger(__name__)


async def get_doctor(session: AsyncSession, clinic_id: int, doctor_id: int, lock: bool = False) -> Doctor:
    q = select(Doctor).where(Doctor.id == doctor_id, Doctor.clinic_id == clinic_id)
    if lock:
        q = q.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(q)
    doctor = result.scalar_one_or_none()
    if doctor is None:
        raise DoctorNotFound(f"Doctor {doctor_id} not found in clinic {clinic_id}")
    return doctor


async def get_clinic_timezone(session: AsyncSession, clinic_id: int) -> str:
    result = await session.execute(select(Clinic.timezone).where(Clinic.id == clinic_id))
    return result.scalar_one_or_none() or settings.default_timezone


async def load_schedule_config(session: AsyncSession, doctor: Doctor) -> ScheduleConfig:
    """Assemble the stored schedule of `doctor` into one immutable value."""
    timezone = await get_clinic_timezone(session, doctor.clinic_id)
    templates = await session.execute(select(DoctorShiftTemplate).where(DoctorShiftTemplate.doctor_id == doctor.id))
    weekly = await session.execute(
        select(DoctorWeeklyShift)
        .where(DoctorWeeklyShift.doctor_id == doctor.id)
        .order_by(DoctorWeeklyShift.day_of_week, DoctorWeeklyShift.id)
    )
    time_off = await session.execute(
        select(DoctorTimeOff).where(DoctorTimeOff.doctor_id == doctor.id).order_by(DoctorTimeOff.start_date)
    )
    return ScheduleConfig(
        doctor_id=doctor.id,
        clinic_id=doctor.clinic_id,
        appointment_duration_min=doctor.appointment_duration_min,
        timezone=timezone,
        shift_templates={
            t.shift_type: ShiftWindow(start=t.start_time, end=t.end_time) for t in templates.scalars().all()
        },
        weekly_shifts=[
            WeeklyShift(day_of_week=w.day_of_week, shift_type=w.shift_type, is_enabled=w.is_enabled)
            for w in weekly.scalars().all()
        ],
        time_off=[_time_off_period(t) for t in time_off.scalars().all()],
        strict_dst=settings.strict_dst,
    )


def _time_off_period(row: DoctorTimeOff) -> TimeOffPeriod:
    return TimeOffPeriod(id=row.id, start_date=row.start_date, end_date=row.end_date, type=row.type, reason=row.reason)


def build_schedule_view(doctor: Doctor, config: ScheduleConfig) -> DoctorSchedule:
    return DoctorSchedule(
        doctor_id=doctor.id,
        clinic_id=doctor.clinic_id,
        appointment_duration_min=config.appointment_duration_min,
        timezone=config.timezone,
        shift_template={shift_type: config.template_for(shift_type) for shift_type in ShiftType},
        weekly=[
            WeeklyShiftChange(
                day_of_week=day,
                shifts={shift_type: config.is_enabled(day, shift_type) for shift_type in ShiftType},
            )
            for day in range(7)
        ],
        time_off=config.time_off,
        is_configured=config.is_fully_configured,
        schedule_configured_at=doctor.schedule_configured_at,
        slots_generated_from=doctor.slots_generated_from,
        slots_generated_to=doctor.slots_generated_to,
    )


async def get_doctor_schedule(session: AsyncSession, clinic_id: int, doctor_id: int) -> DoctorSchedule:
    doctor = await get_doctor(session, clinic_id, doctor_id)
    config = await load_schedule_config(session, doctor)
    return build_schedule_view(doctor, config)


def validate_changes(changes: ScheduleChanges) -> None:
    for shift_type, window in (changes.shift_template or {}).items():
        if window is None:
            continue
        start, end = window_minutes(window)
        if start == end:
            raise ScheduleValidationError(f"{shift_type.value} shift starts and ends at {window.start}")


async def write_schedule_changes(session: AsyncSession, doctor: Doctor, changes: ScheduleChanges) -> None:
    """Upsert the parts of `changes` that are present. Omitted templates and flags keep their value."""
    if changes.appointment_duration_min is not None:
        doctor.appointment_duration_min = changes.appointment_duration_min
        session.add(doctor)

    for shift_type, window in (changes.shift_template or {}).items():
        if window is None:
            continue
        result = await session.execute(
            select(DoctorShiftTemplate).where(
                DoctorShiftTemplate.doctor_id == doctor.id, DoctorShiftTemplate.shift_type == shift_type
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = DoctorShiftTemplate(clinic_id=doctor.clinic_id, doctor_id=doctor.id, shift_type=shift_type)
        row.start_time = window.start
        row.end_time = window.end
        session.add(row)

    for entry in changes.weekly or []:
        for shift_type, enabled in entry.shifts.items():
            result = await session.execute(
                select(DoctorWeeklyShift).where(
                    DoctorWeeklyShift.doctor_id == doctor.id,
                    DoctorWeeklyShift.day_of_week == entry.day_of_week,
                    DoctorWeeklyShift.shift_type == shift_type,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = DoctorWeeklyShift(
                    clinic_id=doctor.clinic_id,
                    doctor_id=doctor.id,
                    day_of_week=entry.day_of_week,
                    shift_type=shift_type,
                )
            row.is_enabled = enabled
            session.add(row)

    await session.flush()


async def create_time_off(
    session: AsyncSession,
    clinic_id: int,
    doctor_id: int,
    payload: TimeOffCreate,
    now: datetime,
) -> TimeOffResult:
    """Block a date range. Booked appointments inside it refuse the request unless force_cancel is set."""
    if payload.start_date > payload.end_date:
        raise ScheduleValidationError("start_date must be before or equal to end_date")
    try:
        async with session.begin_nested():
            doctor = await get_doctor(session, clinic_id, doctor_id, lock=True)
            timezone = await get_clinic_timezone(session, clinic_id)
            rows = await list_booked_appointments(
                session,
                doctor_id,
                start_of_local_day(payload.start_date, timezone),
                start_of_local_day(payload.end_date + timedelta(days=1), timezone),
            )
            if rows and not payload.force_cancel:
                raise ConflictBlocked(
                    f"{len(rows)} booked appointment(s) fall inside the requested time off",
                    [to_conflict(a, p, ConflictReason.SHIFT_DISABLED) for a, p in rows],
                )
            cancelled = await cancel_appointments(session, doctor_id, [a.id for a, _ in rows], now)
            removed = await delete_slots_in_range(session, doctor_id, payload.start_date, payload.end_date)
            row = DoctorTimeOff(
                clinic_id=doctor.clinic_id,
                doctor_id=doctor.id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                type=payload.type,
                reason=payload.reason,
            )
            session.add(row)
            await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Creating time off for doctor %s failed", doctor_id)
        raise TransactionFailure(f"Could not create time off for doctor {doctor_id}") from e

    logger.info(
        "Time off %s..%s for doctor %s: removed %d slot(s), cancelled %d appointment(s)",
        payload.start_date,
        payload.end_date,
        doctor_id,
        removed,
        len(cancelled),
    )
    return TimeOffResult(time_off=_time_off_period(row), cancelled_appointment_ids=cancelled, slots_changed=removed)


async def delete_time_off(
    session: AsyncSession,
    clinic_id: int,
    doctor_id: int,
    time_off_id: int,
    now: datetime,
) -> TimeOffResult:
    """Remove a time off entry and, for an activated schedule, put its slots back."""
    try:
        async with session.begin_nested():
            doctor = await get_doctor(session, clinic_id, doctor_id, lock=True)
            result = await session.execute(
                select(DoctorTimeOff).where(DoctorTimeOff.id == time_off_id, DoctorTimeOff.doctor_id == doctor_id)
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise TimeOffNotFound(f"Time off {time_off_id} not found for doctor {doctor_id}")
            period = _time_off_period(row)
            await session.delete(row)
            await session.flush()

            restored = 0
            if doctor.schedule_configured_at is not None and doctor.slots_generated_to is not None:
                config = await load_schedule_config(session, doctor)
                today = clinic_today(now, config.timezone)
                start = max(period.start_date, today, doctor.slots_generated_from or today)
                end = min(period.end_date, doctor.slots_generated_to)
                if start <= end:
                    restored, _ = await persist_slots(session, compile_window(config, start, end))
    except SQLAlchemyError as e:
        logger.exception("Deleting time off %s for doctor %s failed", time_off_id, doctor_id)
        raise TransactionFailure(f"Could not delete time off {time_off_id}") from e

    logger.info("Deleted time off %s for doctor %s, restored %d slot(s)", time_off_id, doctor_id, restored)
    return TimeOffResult(time_off=period, slots_changed=restored)


async def check_schedule_conflicts(
    session: AsyncSession,
    clinic_id: int,
    doctor_id: int,
    changes: ScheduleChanges,
    now: datetime,
) -> ConflictCheckResult:
    """Dry run of a schedule edit: which booked appointments it would orphan."""
    validate_changes(changes)
    doctor = await get_doctor(session, clinic_id, doctor_id)
    current = await load_schedule_config(session, doctor)
    return await detect_conflicts(session, doctor_id, merge_schedule_changes(current, changes), now)
