"""Find booked appointments a proposed schedule would no longer have a slot for.

Detection is a pure read. The same functions are re-run by the resolver inside its
transaction, so a booking created between check and commit is still caught.
"""
import logging
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.timezone import as_utc, clinic_today, local_datetime, start_of_local_day
from clinic_scheduler.models.appointment import Appointment
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.schedule import (
    ConflictCheckResult,
    ConflictingAppointment,
    ConflictReason,
    ScheduleChanges,
    ScheduleConfig,
    ShiftType,
    WeeklyShift,
)
from clinic_scheduler.services.appointment_service import list_booked_appointments
from clinic_scheduler.services.slot_compiler import MINUTES_PER_DAY, compile_slots, enabled_windows

logger = logging.getLogger(__name__)


def merge_schedule_changes(config: ScheduleConfig, changes: ScheduleChanges) -> ScheduleConfig:
    """Current config with a partial edit applied on top."""
    templates = dict(config.shift_templates)
    if changes.shift_template:
        for shift_type, window in changes.shift_template.items():
            if window is not None:
                templates[shift_type] = window

    flags: dict[tuple[int, ShiftType], bool] = {}
    for ws in config.weekly_shifts:
        flags[(ws.day_of_week, ws.shift_type)] = ws.is_enabled
    for entry in changes.weekly or []:
        for shift_type, enabled in entry.shifts.items():
            flags[(entry.day_of_week, shift_type)] = enabled
    weekly = [
        WeeklyShift(day_of_week=day, shift_type=shift_type, is_enabled=enabled)
        for (day, shift_type), enabled in sorted(flags.items(), key=lambda kv: (kv[0][0], kv[0][1].value))
    ]

    duration = changes.appointment_duration_min or config.appointment_duration_min
    return config.model_copy(
        update={"appointment_duration_min": duration, "shift_templates": templates, "weekly_shifts": weekly}
    )


def _covering_windows(d: date, config: ScheduleConfig) -> list[tuple[ShiftType, int, int]]:
    """Enabled windows touching local date d, including overnight spill from the day before."""
    windows = list(enabled_windows(d, config))
    for shift_type, start, end in enabled_windows(d - timedelta(days=1), config):
        if end > MINUTES_PER_DAY:
            windows.append((shift_type, start - MINUTES_PER_DAY, end - MINUTES_PER_DAY))
    return windows


def _valid_starts(d: date, config: ScheduleConfig, cache: dict[date, set[datetime]]) -> set[datetime]:
    if d not in cache:
        starts = {s.starts_at for s in compile_slots(d, config, strict_dst=False)}
        starts |= {s.starts_at for s in compile_slots(d - timedelta(days=1), config, strict_dst=False)}
        cache[d] = starts
    return cache[d]


def classify_appointment(
    appointment: Appointment,
    config: ScheduleConfig,
    cache: dict[date, set[datetime]] | None = None,
) -> ConflictReason | None:
    """Why `appointment` would be orphaned under `config`, or None if it still maps to a slot."""
    starts_at = as_utc(appointment.starts_at)
    ends_at = as_utc(appointment.ends_at)
    local = local_datetime(starts_at, config.timezone)
    d = local.date()
    minute = local.hour * 60 + local.minute

    windows = _covering_windows(d, config)
    if not any(start <= minute < end for _, start, end in windows):
        return ConflictReason.SHIFT_DISABLED

    duration = round((ends_at - starts_at).total_seconds() / 60)
    if duration != config.appointment_duration_min:
        return ConflictReason.DURATION_MISMATCH

    if starts_at not in _valid_starts(d, config, cache if cache is not None else {}):
        return ConflictReason.TIME_OUTSIDE_SHIFT
    return None


def to_conflict(appointment: Appointment, patient: Patient | None, reason: ConflictReason) -> ConflictingAppointment:
    return ConflictingAppointment(
        appointment_id=appointment.id,
        starts_at=as_utc(appointment.starts_at),
        ends_at=as_utc(appointment.ends_at),
        patient_name=patient.full_name if patient else None,
        patient_phone=patient.phone if patient else None,
        reason=reason,
    )


async def detect_conflicts(
    session: AsyncSession,
    doctor_id: int,
    proposed_config: ScheduleConfig,
    now: datetime,
    window_end: date | None = None,
) -> ConflictCheckResult:
    """Upcoming booked appointments, from now through window_end, that the proposal invalidates."""
    tz = proposed_config.timezone
    today = clinic_today(now, tz)
    end_date = window_end or today + timedelta(days=settings.conflict_window_days)
    # appointments that already started today are left alone
    since = max(as_utc(now), start_of_local_day(today, tz))
    rows = await list_booked_appointments(
        session,
        doctor_id,
        since,
        start_of_local_day(end_date + timedelta(days=1), tz),
    )
    cache: dict[date, set[datetime]] = {}
    conflicts: list[ConflictingAppointment] = []
    for appointment, patient in rows:
        reason = classify_appointment(appointment, proposed_config, cache)
        if reason is not None:
            conflicts.append(to_conflict(appointment, patient, reason))
    if conflicts:
        logger.info(
            "Schedule proposal for doctor %s conflicts with %d of %d booked appointment(s)",
            doctor_id,
            len(conflicts),
            len(rows),
        )
    return ConflictCheckResult(
        has_conflicts=bool(conflicts),
        conflicting_appointments=conflicts,
        total_conflicts=len(conflicts),
    )
