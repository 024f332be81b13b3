from datetime import date, datetime

from sqlmodel import Field, SQLModel


class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    full_name: str
    specialization: str | None = None
    appointment_duration_min: int = 15
    is_active: bool = True
    has_license: bool = False
    # Set once, the first time slots are generated for a complete schedule
    schedule_configured_at: datetime | None = None
    # Clinic-local calendar range currently materialized in the slots table
    slots_generated_from: date | None = None
    slots_generated_to: date | None = None

