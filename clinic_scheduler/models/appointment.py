from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    BOOKED = "BOOKED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


class Appointment(SQLModel, table=True):
    """Owned by the booking subsystem; the scheduler reads it and only ever cancels."""

    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    patient_id: int | None = Field(default=None, foreign_key="patients.id", index=True)
    starts_at: datetime = Field(index=True)
    ends_at: datetime
    status: AppointmentStatus = Field(default=AppointmentStatus.BOOKED, index=True)
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
    cancelled_at: datetime | None = None
