import logging
from collections.abc import Sequence
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import DataIntegrityViolation, ScheduleValidationError
from clinic_scheduler.core.timezone import as_utc, local_clock, local_date, start_of_local_day
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.schedule import ScheduleConfig
from clinic_scheduler.models.slot import AnnotatedSlot, CandidateSlot, DaySlots, SlotsSummary, SlotStatus
from clinic_scheduler.services.appointment_service import list_appointments_between
from clinic_scheduler.services.schedule_service import get_doctor, load_schedule_config
from clinic_scheduler.services.slot_compiler import compile_range

logger = logging.getLogger(__name__)


def merge_availability(
    candidates: Sequence[CandidateSlot],
    appointments: Sequence[Appointment],
    clinic_now: datetime,
    timezone: str,
) -> list[AnnotatedSlot]:
    """Annotate candidates with booked / past state.

    A slot is matched to BOOKED appointments by exact start instant; the local
    date + HH:MM label is only consulted when nothing matches exactly. Two bookings
    on one slot is a data integrity violation.
    """
    by_instant: dict[datetime, list[Appointment]] = {}
    by_label: dict[tuple[date, str], list[Appointment]] = {}
    for a in appointments:
        if a.status != AppointmentStatus.BOOKED:
            continue
        starts_at = as_utc(a.starts_at)
        by_instant.setdefault(starts_at, []).append(a)
        by_label.setdefault((local_date(starts_at, timezone), local_clock(starts_at, timezone)), []).append(a)

    now = as_utc(clinic_now)
    annotated: list[AnnotatedSlot] = []
    for slot in candidates:
        starts_at = as_utc(slot.starts_at)
        matches = by_instant.get(starts_at) or by_label.get(
            (local_date(starts_at, timezone), local_clock(starts_at, timezone)), []
        )
        if len(matches) > 1:
            ids = sorted(a.id for a in matches)
            logger.error(
                "Slot %s of doctor %s is held by %d booked appointments: %s",
                starts_at.isoformat(),
                slot.doctor_id,
                len(matches),
                ids,
            )
            raise DataIntegrityViolation(
                f"{len(matches)} booked appointments {ids} share slot {starts_at.isoformat()}"
            )
        booked = matches[0] if matches else None
        annotated.append(
            AnnotatedSlot(
                **slot.model_dump(exclude={"status"}),
                status=SlotStatus.BOOKED if booked else SlotStatus.AVAILABLE,
                appointment_id=booked.id if booked else None,
                is_past=starts_at < now,
            )
        )
    return annotated


def summarize(days: Sequence[DaySlots], timezone: str, duration_min: int) -> SlotsSummary:
    slots = [s for day in days for s in day.slots]
    booked = sum(1 for s in slots if s.status == SlotStatus.BOOKED)
    return SlotsSummary(
        total_days=len(days),
        working_days=sum(1 for day in days if day.slots),
        total_slots=len(slots),
        available_slots=sum(1 for s in slots if s.is_available),
        booked_slots=booked,
        timezone=timezone,
        doctor_duration_min=duration_min,
    )


async def _annotated_days(
    session: AsyncSession, config: ScheduleConfig, start: date, end: date, now: datetime
) -> list[DaySlots]:
    if end < start:
        raise ScheduleValidationError("end_date must not be before start_date")
    if (end - start).days + 1 > settings.max_range_days:
        raise ScheduleValidationError(f"Date range cannot exceed {settings.max_range_days} days")
    tz = config.timezone
    compiled = compile_range(start, end, config)
    # one extra day so overnight slots are covered
    appointments = await list_appointments_between(
        session, config.doctor_id, start_of_local_day(start, tz), start_of_local_day(end + timedelta(days=2), tz)
    )
    return [DaySlots(day=d, slots=merge_availability(slots, appointments, now, tz)) for d, slots in compiled.items()]


async def get_slots_for_range(
    session: AsyncSession,
    clinic_id: int,
    doctor_id: int,
    start: date,
    end: date,
    now: datetime,
) -> list[DaySlots]:
    doctor = await get_doctor(session, clinic_id, doctor_id)
    config = await load_schedule_config(session, doctor)
    return await _annotated_days(session, config, start, end, now)


async def get_slots_for_date(
    session: AsyncSession, clinic_id: int, doctor_id: int, d: date, now: datetime
) -> DaySlots:
    days = await get_slots_for_range(session, clinic_id, doctor_id, d, d, now)
    return days[0]


async def get_slots_summary(
    session: AsyncSession,
    clinic_id: int,
    doctor_id: int,
    start: date,
    end: date,
    now: datetime,
) -> SlotsSummary:
    doctor = await get_doctor(session, clinic_id, doctor_id)
    config = await load_schedule_config(session, doctor)
    days = await _annotated_days(session, config, start, end, now)
    return summarize(days, config.timezone, config.appointment_duration_min)
