"""Apply a schedule edit together with the cancellation of the appointments it orphans.

Everything happens under one SAVEPOINT with the doctor row locked: conflicts are
detected again inside it, so the set that gets cancelled is the set that exists at
commit time. Any failure leaves the previous schedule and every appointment untouched.
"""
import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.errors import ConflictBlocked, ScheduleValidationError, TransactionFailure
from clinic_scheduler.core.timezone import clinic_today, to_naive_utc, utc_now
from clinic_scheduler.models.schedule import ConflictCheckResult, ScheduleChanges, ScheduleUpdateResult
from clinic_scheduler.services.appointment_service import cancel_appointments
from clinic_scheduler.services.conflict_detector import detect_conflicts, merge_schedule_changes
from clinic_scheduler.services.schedule_service import (
    build_schedule_view,
    get_doctor,
    load_schedule_config,
    validate_changes,
    write_schedule_changes,
)
from clinic_scheduler.services.slot_store import rebuild_window

logger = logging.getLogger(__name__)


def select_cancellations(
    check: ConflictCheckResult,
    cancel_conflicting: bool,
    appointment_ids_to_cancel: Sequence[int] | None,
) -> list[int]:
    """Ids to cancel, or raise if the caller's consent does not cover every conflict."""
    detected = [c.appointment_id for c in check.conflicting_appointments]
    if not detected and not appointment_ids_to_cancel:
        return []
    if not cancel_conflicting:
        if detected:
            raise ConflictBlocked(
                f"{len(detected)} booked appointment(s) conflict with the new schedule",
                check.conflicting_appointments,
            )
        return []
    if appointment_ids_to_cancel is None:
        return detected

    requested = set(appointment_ids_to_cancel)
    unknown = sorted(requested - set(detected))
    if unknown:
        raise ScheduleValidationError(f"Appointments {unknown} are not among the conflicting appointments")
    left = [c for c in check.conflicting_appointments if c.appointment_id not in requested]
    if left:
        raise ConflictBlocked(
            f"{len(left)} conflicting appointment(s) were not selected for cancellation",
            left,
        )
    return sorted(requested)


async def apply_schedule_with_conflicts(
    session: AsyncSession,
    clinic_id: int,
    doctor_id: int,
    changes: ScheduleChanges,
    cancel_conflicting: bool,
    appointment_ids_to_cancel: Sequence[int] | None = None,
    now: datetime | None = None,
) -> ScheduleUpdateResult:
    now = now or utc_now()
    validate_changes(changes)
    try:
        async with session.begin_nested():
            doctor = await get_doctor(session, clinic_id, doctor_id, lock=True)
            current = await load_schedule_config(session, doctor)
            proposed = merge_schedule_changes(current, changes)

            check = await detect_conflicts(session, doctor_id, proposed, now)
            to_cancel = select_cancellations(check, cancel_conflicting, appointment_ids_to_cancel)

            await write_schedule_changes(session, doctor, changes)
            cancelled = await cancel_appointments(session, doctor_id, to_cancel, now)

            first_time = False
            regenerated = 0
            if doctor.schedule_configured_at is None:
                if proposed.is_fully_configured:
                    # activation only; slots are generated by an explicit regeneration
                    doctor.schedule_configured_at = to_naive_utc(now)
                    first_time = True
            else:
                today = clinic_today(now, proposed.timezone)
                if doctor.slots_generated_to is not None and doctor.slots_generated_to >= today:
                    start = max(today, doctor.slots_generated_from or today)
                    _, regenerated = await rebuild_window(session, proposed, start, doctor.slots_generated_to)
            session.add(doctor)
            await session.flush()
    except SQLAlchemyError as e:
        logger.exception("Schedule update for doctor %s rolled back", doctor_id)
        raise TransactionFailure(f"Schedule update for doctor {doctor_id} failed") from e

    logger.info(
        "Schedule updated for doctor %s: cancelled=%s slots_regenerated=%d first_time=%s",
        doctor_id,
        cancelled,
        regenerated,
        first_time,
    )
    return ScheduleUpdateResult(
        schedule=build_schedule_view(doctor, proposed),
        cancelled_appointment_ids=cancelled,
        slots_regenerated=regenerated,
        is_first_time_configuration=first_time,
    )
