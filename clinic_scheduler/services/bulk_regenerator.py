"""Recompute and persist slot rows for a doctor, a clinic, or every active clinic.

Each doctor gets its own session and its own commit, so one doctor's failure is
recorded in the report and the run goes on. Re-running over the same range leaves
the same rows behind.
"""
import logging
from datetime import date, datetime

from pydantic import model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import Field, SQLModel

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import ConfigurationIncomplete
from clinic_scheduler.core.timezone import clinic_today, end_of_local_year, to_naive_utc, utc_now
from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.services.schedule_service import get_clinic_timezone, load_schedule_config
from clinic_scheduler.services.slot_compiler import compile_slots, is_time_off, iter_dates
from clinic_scheduler.services.slot_store import (
    batched,
    delete_all_slots,
    delete_slots_in_range,
    insert_slot_batch,
    slot_row,
)

logger = logging.getLogger(__name__)


class RegenerationScope(SQLModel):
    clinic_id: int | None = None
    doctor_id: int | None = None

    @model_validator(mode="after")
    def _one_target(self):
        if (self.clinic_id is None) == (self.doctor_id is None):
            raise ValueError("Exactly one of clinic_id or doctor_id is required")
        return self


class DoctorRegenerationResult(SQLModel):
    doctor_id: int
    doctor_name: str
    slots_created: int = 0
    slots_deleted: int = 0
    success: bool = True
    skipped: bool = False
    error: str | None = None


class RegenerationReport(SQLModel):
    start_date: date
    end_date: date
    doctors: list[DoctorRegenerationResult] = Field(default_factory=list)

    @property
    def total_created(self) -> int:
        return sum(d.slots_created for d in self.doctors)

    @property
    def succeeded(self) -> int:
        return sum(1 for d in self.doctors if d.success and not d.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for d in self.doctors if d.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for d in self.doctors if not d.success)


async def _doctor_ids(session: AsyncSession, scope: RegenerationScope) -> list[int]:
    q = select(Doctor.id).where(Doctor.is_active.is_(True)).order_by(Doctor.id)
    if scope.doctor_id is not None:
        q = q.where(Doctor.id == scope.doctor_id)
    else:
        q = q.where(Doctor.clinic_id == scope.clinic_id)
    result = await session.execute(q)
    return [row[0] for row in result.all()]


async def regenerate_doctor(
    session: AsyncSession,
    doctor: Doctor,
    start: date,
    end: date,
    rebuild: bool = True,
    batch_size: int | None = None,
    now: datetime | None = None,
    purge: bool = False,
) -> DoctorRegenerationResult:
    """Write the doctor's slots for [start, end] in batches. Caller owns the commit.

    `purge` drops every stored slot of the doctor first, not only those in the range.
    """
    result = DoctorRegenerationResult(doctor_id=doctor.id, doctor_name=doctor.full_name)
    config = await load_schedule_config(session, doctor)
    if not config.is_fully_configured:
        raise ConfigurationIncomplete(f"Doctor {doctor.id} has no shift template or no enabled weekly shift")

    if purge:
        result.slots_deleted = await delete_all_slots(session, doctor.id)
    elif rebuild:
        result.slots_deleted = await delete_slots_in_range(session, doctor.id, start, end)

    rows: list[dict] = []
    for d in iter_dates(start, end):
        if is_time_off(d, config):
            continue
        rows.extend(slot_row(s) for s in compile_slots(d, config))

    for chunk in batched(rows, batch_size or settings.slot_batch_size):
        created = await insert_slot_batch(session, chunk)
        result.slots_created += created
        if doctor.schedule_configured_at is None:
            doctor.schedule_configured_at = to_naive_utc(now or utc_now())

    doctor.slots_generated_from = start
    doctor.slots_generated_to = end
    session.add(doctor)
    await session.flush()
    return result


async def _scope_timezone(session: AsyncSession, scope: RegenerationScope) -> str:
    clinic_id = scope.clinic_id
    if clinic_id is None:
        result = await session.execute(select(Doctor.clinic_id).where(Doctor.id == scope.doctor_id))
        clinic_id = result.scalar_one_or_none()
    if clinic_id is None:
        return settings.default_timezone
    return await get_clinic_timezone(session, clinic_id)


async def regenerate(
    session_factory: async_sessionmaker[AsyncSession],
    scope: RegenerationScope,
    start: date | None = None,
    end: date | None = None,
    rebuild: bool = True,
    batch_size: int | None = None,
    now: datetime | None = None,
) -> RegenerationReport:
    """Regenerate the scope over [start, end]; start defaults to the clinic's local today, end to Dec 31."""
    async with session_factory() as session:
        if start is None:
            start = clinic_today(now or utc_now(), await _scope_timezone(session, scope))
        doctor_ids = await _doctor_ids(session, scope)
    end = end or end_of_local_year(start)
    report = RegenerationReport(start_date=start, end_date=end)
    for doctor_id in doctor_ids:
        report.doctors.append(await _regenerate_one(session_factory, doctor_id, start, end, rebuild, batch_size, now))
    logger.info(
        "Slot regeneration %s..%s: doctors=%d succeeded=%d skipped=%d failed=%d created=%d",
        start,
        end,
        len(report.doctors),
        report.succeeded,
        report.skipped,
        report.failed,
        report.total_created,
    )
    return report


async def _regenerate_one(
    session_factory: async_sessionmaker[AsyncSession],
    doctor_id: int,
    start: date,
    end: date,
    rebuild: bool,
    batch_size: int | None,
    now: datetime | None,
    purge: bool = False,
) -> DoctorRegenerationResult:
    async with session_factory() as session:
        doctor = await session.get(Doctor, doctor_id)
        if doctor is None:
            return DoctorRegenerationResult(doctor_id=doctor_id, doctor_name="", success=False, error="Doctor not found")
        name = doctor.full_name
        try:
            result = await regenerate_doctor(session, doctor, start, end, rebuild, batch_size, now, purge)
            await session.commit()
        except ConfigurationIncomplete as e:
            await session.rollback()
            logger.info("Skipping doctor %s: %s", doctor_id, e)
            return DoctorRegenerationResult(doctor_id=doctor_id, doctor_name=name, skipped=True, error=str(e))
        except Exception as e:
            await session.rollback()
            logger.exception("Slot regeneration failed for doctor %s", doctor_id)
            return DoctorRegenerationResult(
                doctor_id=doctor_id, doctor_name=name, success=False, error=f"{type(e).__name__}: {e}"
            )
    logger.info("Doctor %s: created %d slot(s) for %s..%s", doctor_id, result.slots_created, start, end)
    return result


async def regenerate_all(
    session_factory: async_sessionmaker[AsyncSession], now: datetime | None = None
) -> list[RegenerationReport]:
    """Every active clinic, active licensed doctors: drop all stored slots, then rebuild clinic-local today through Dec 31."""
    now = now or utc_now()
    async with session_factory() as session:
        result = await session.execute(select(Clinic).where(Clinic.is_active.is_(True)).order_by(Clinic.id))
        clinics = list(result.scalars().all())

    reports: list[RegenerationReport] = []
    for clinic in clinics:
        today = clinic_today(now, clinic.timezone or settings.default_timezone)
        end = end_of_local_year(today)
        report = RegenerationReport(start_date=today, end_date=end)
        async with session_factory() as session:
            result = await session.execute(
                select(Doctor.id)
                .where(
                    Doctor.clinic_id == clinic.id,
                    Doctor.is_active.is_(True),
                    Doctor.has_license.is_(True),
                )
                .order_by(Doctor.id)
            )
            doctor_ids = [row[0] for row in result.all()]
        for doctor_id in doctor_ids:
            outcome = await _regenerate_one(session_factory, doctor_id, today, end, True, None, now, purge=True)
            report.doctors.append(outcome)
        logger.info(
            "Clinic %s (%s): %d doctor(s), created=%d failed=%d",
            clinic.id,
            clinic.name,
            len(report.doctors),
            report.total_created,
            report.failed,
        )
        reports.append(report)
    return reports
