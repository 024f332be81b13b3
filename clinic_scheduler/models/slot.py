from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from clinic_scheduler.models.schedule import ShiftType


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class SlotStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"
    BLOCKED = "BLOCKED"


class Slot(SQLModel, table=True):
    """Materialized slot row. Disposable: rebuilt on regeneration, never edited by hand."""

    __tablename__ = "slots"
    __table_args__ = (UniqueConstraint("doctor_id", "starts_at", name="uq_slots_doctor_starts_at"),)
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    slot_date: date = Field(index=True)  # clinic-local calendar date of the shift
    starts_at: datetime = Field(index=True)
    ends_at: datetime
    shift_type: ShiftType
    status: SlotStatus = SlotStatus.AVAILABLE
    created_at: datetime = Field(default_factory=_utc_naive_now)


class CandidateSlot(SQLModel):
    doctor_id: int | None = None
    clinic_id: int | None = None
    slot_date: date
    time: str  # HH:MM clinic-local label of starts_at
    starts_at: datetime  # aware UTC
    ends_at: datetime
    shift_type: ShiftType
    status: SlotStatus = SlotStatus.AVAILABLE


class AnnotatedSlot(CandidateSlot):
    is_past: bool = False
    appointment_id: int | None = None

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE and not self.is_past


class DaySlots(SQLModel):
    day: date
    slots: list[AnnotatedSlot]


class SlotsSummary(SQLModel):
    total_days: int
    working_days: int
    total_slots: int
    available_slots: int
    booked_slots: int
    timezone: str
    doctor_duration_min: int
