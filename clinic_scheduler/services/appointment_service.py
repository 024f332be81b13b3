import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.timezone import to_naive_utc
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.patient import Patient

logger = logging.getLogger(__name__)


async def list_booked_appointments(
    session: AsyncSession,
    doctor_id: int,
    start_inclusive: datetime,
    end_exclusive: datetime | None = None,
) -> list[tuple[Appointment, Patient | None]]:
    """BOOKED appointments of a doctor starting in the window, oldest first, with their patient."""
    q = (
        select(Appointment, Patient)
        .outerjoin(Patient, Patient.id == Appointment.patient_id)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.status == AppointmentStatus.BOOKED,
            Appointment.starts_at >= to_naive_utc(start_inclusive),
        )
        .order_by(Appointment.starts_at, Appointment.id)
    )
    if end_exclusive is not None:
        q = q.where(Appointment.starts_at < to_naive_utc(end_exclusive))
    result = await session.execute(q)
    return [(row[0], row[1]) for row in result.all()]


async def list_appointments_between(
    session: AsyncSession,
    doctor_id: int,
    start_inclusive: datetime,
    end_exclusive: datetime,
) -> list[Appointment]:
    """All appointments (any status) of a doctor in the window; availability filters by status itself."""
    result = await session.execute(
        select(Appointment)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.starts_at >= to_naive_utc(start_inclusive),
            Appointment.starts_at < to_naive_utc(end_exclusive),
        )
        .order_by(Appointment.starts_at, Appointment.id)
    )
    return list(result.scalars().all())


async def cancel_appointments(
    session: AsyncSession, doctor_id: int, appointment_ids: Sequence[int], now: datetime
) -> list[int]:
    """Cancel BOOKED appointments of the doctor. Returns the ids actually cancelled."""
    if not appointment_ids:
        return []
    result = await session.execute(
        select(Appointment.id).where(
            Appointment.id.in_(list(appointment_ids)),
            Appointment.doctor_id == doctor_id,
            Appointment.status == AppointmentStatus.BOOKED,
        )
    )
    ids = sorted(row[0] for row in result.all())
    if ids:
        await session.execute(
            update(Appointment)
            .where(Appointment.id.in_(ids))
            .values(status=AppointmentStatus.CANCELLED, cancelled_at=to_naive_utc(now))
        )
        await session.flush()
        logger.info("Cancelled %d appointment(s) for doctor %s: %s", len(ids), doctor_id, ids)
    return ids
