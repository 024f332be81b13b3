import logging
from collections.abc import Iterator, Sequence
from datetime import date

from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import TransactionFailure
from clinic_scheduler.core.timezone import to_naive_utc, utc_now
from clinic_scheduler.models.schedule import ScheduleConfig
from clinic_scheduler.models.slot import CandidateSlot, Slot, SlotStatus
from clinic_scheduler.services.slot_compiler import compile_slots, is_time_off, iter_dates

logger = logging.getLogger(__name__)


def batched(items: Sequence, size: int) -> Iterator[Sequence]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def slot_row(slot: CandidateSlot) -> dict:
    return {
        "clinic_id": slot.clinic_id,
        "doctor_id": slot.doctor_id,
        "slot_date": slot.slot_date,
        "starts_at": to_naive_utc(slot.starts_at),
        "ends_at": to_naive_utc(slot.ends_at),
        "shift_type": slot.shift_type,
        "status": SlotStatus.AVAILABLE,
        # bulk inserts bypass the model default
        "created_at": to_naive_utc(utc_now()),
    }


def compile_window(config: ScheduleConfig, start: date, end: date) -> list[CandidateSlot]:
    """All candidate slots for [start, end], one calendar day at a time, time-off days skipped."""
    slots: list[CandidateSlot] = []
    for d in iter_dates(start, end):
        if is_time_off(d, config):
            continue
        slots.extend(compile_slots(d, config))
    return slots


async def insert_slot_batch(session: AsyncSession, rows: Sequence[dict]) -> int:
    """Insert rows, silently skipping any that collide on (doctor_id, starts_at). Returns rows created."""
    if not rows:
        return 0
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(Slot).values(list(rows))
    elif dialect == "sqlite":
        stmt = sqlite.insert(Slot).values(list(rows))
    else:
        raise TransactionFailure(f"Idempotent slot insert not supported on {dialect}")
    stmt = stmt.on_conflict_do_nothing(index_elements=["doctor_id", "starts_at"])
    result = await session.execute(stmt)
    return result.rowcount or 0


async def persist_slots(
    session: AsyncSession, slots: Sequence[CandidateSlot], batch_size: int | None = None
) -> tuple[int, int]:
    """Batch-insert candidates. Returns (created, skipped)."""
    size = batch_size or settings.slot_batch_size
    rows = [slot_row(s) for s in slots]
    created = 0
    for chunk in batched(rows, size):
        created += await insert_slot_batch(session, chunk)
    await session.flush()
    return created, len(rows) - created


async def delete_slots_in_range(
    session: AsyncSession,
    doctor_id: int,
    start: date,
    end: date,
    only_available: bool = False,
) -> int:
    """Delete the doctor's slot rows whose calendar date lies in [start, end]."""
    stmt = delete(Slot).where(
        Slot.doctor_id == doctor_id,
        Slot.slot_date >= start,
        Slot.slot_date <= end,
    )
    if only_available:
        stmt = stmt.where(Slot.status == SlotStatus.AVAILABLE)
    result = await session.execute(stmt)
    await session.flush()
    return result.rowcount or 0


async def delete_all_slots(session: AsyncSession, doctor_id: int) -> int:
    """Delete every slot row of the doctor, whatever its date."""
    result = await session.execute(delete(Slot).where(Slot.doctor_id == doctor_id))
    await session.flush()
    return result.rowcount or 0


async def rebuild_window(
    session: AsyncSession, config: ScheduleConfig, start: date, end: date, only_available: bool = True
) -> tuple[int, int]:
    """Replace the doctor's materialized slots in [start, end] with a fresh compile. Returns (deleted, created)."""
    deleted = await delete_slots_in_range(session, config.doctor_id, start, end, only_available=only_available)
    created, _ = await persist_slots(session, compile_window(config, start, end))
    logger.info(
        "Rebuilt slots for doctor %s %s..%s: deleted=%d created=%d", config.doctor_id, start, end, deleted, created
    )
    return deleted, created
