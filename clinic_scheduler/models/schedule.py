import re
from datetime import UTC, date, datetime
from enum import Enum

from pydantic import field_validator
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

CLOCK_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class ShiftType(str, Enum):
    MORNING = "MORNING"
    EVENING = "EVENING"


class TimeOffType(str, Enum):
    BREAK = "BREAK"
    VACATION = "VACATION"
    OTHER = "OTHER"


class ConflictReason(str, Enum):
    DURATION_MISMATCH = "DURATION_MISMATCH"
    SHIFT_DISABLED = "SHIFT_DISABLED"
    TIME_OUTSIDE_SHIFT = "TIME_OUTSIDE_SHIFT"


# --- persisted schedule configuration ---


class DoctorShiftTemplate(SQLModel, table=True):
    __tablename__ = "doctor_shift_templates"
    __table_args__ = (UniqueConstraint("doctor_id", "shift_type", name="uq_shift_templates_doctor_shift"),)
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    shift_type: ShiftType
    start_time: str  # HH:MM clinic-local
    end_time: str


class DoctorWeeklyShift(SQLModel, table=True):
    __tablename__ = "doctor_weekly_shifts"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", "shift_type", name="uq_weekly_shifts_doctor_day_shift"),
    )
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    day_of_week: int  # 0 = Sunday .. 6 = Saturday
    shift_type: ShiftType
    is_enabled: bool = False


class DoctorTimeOff(SQLModel, table=True):
    __tablename__ = "doctor_time_offs"
    id: int | None = Field(default=None, primary_key=True)
    clinic_id: int = Field(foreign_key="clinics.id", index=True)
    doctor_id: int = Field(foreign_key="doctors.id", index=True)
    start_date: date = Field(index=True)
    end_date: date = Field(index=True)  # inclusive
    type: TimeOffType = TimeOffType.OTHER
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)


# --- in-memory schedule values ---


class ShiftWindow(SQLModel):
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_clock(cls, v: str) -> str:
        if not re.match(CLOCK_PATTERN, v):
            raise ValueError(f"Invalid time {v!r}, expected HH:MM")
        return v


class WeeklyShift(SQLModel):
    day_of_week: int = Field(ge=0, le=6)
    shift_type: ShiftType
    is_enabled: bool


class TimeOffPeriod(SQLModel):
    id: int | None = None
    start_date: date
    end_date: date
    type: TimeOffType = TimeOffType.OTHER
    reason: str | None = None

    def covers(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date


class ScheduleConfig(SQLModel):
    """Everything slot compilation depends on for one doctor."""

    doctor_id: int | None = None
    clinic_id: int | None = None
    appointment_duration_min: int = Field(gt=0, le=24 * 60)
    timezone: str = "UTC"
    shift_templates: dict[ShiftType, ShiftWindow] = Field(default_factory=dict)
    weekly_shifts: list[WeeklyShift] = Field(default_factory=list)
    time_off: list[TimeOffPeriod] = Field(default_factory=list)
    # raise on nonexistent local times instead of skipping them
    strict_dst: bool = False

    def template_for(self, shift_type: ShiftType) -> ShiftWindow | None:
        return self.shift_templates.get(shift_type)

    def is_enabled(self, day_of_week: int, shift_type: ShiftType) -> bool:
        # later entries win
        enabled = False
        for ws in self.weekly_shifts:
            if ws.day_of_week == day_of_week and ws.shift_type == shift_type:
                enabled = ws.is_enabled
        return enabled

    @property
    def is_fully_configured(self) -> bool:
        if not self.shift_templates:
            return False
        return any(
            self.is_enabled(ws.day_of_week, ws.shift_type) and ws.shift_type in self.shift_templates
            for ws in self.weekly_shifts
        )


class WeeklyShiftChange(SQLModel):
    day_of_week: int = Field(ge=0, le=6)
    shifts: dict[ShiftType, bool]


class ScheduleChanges(SQLModel):
    """Partial schedule edit; omitted parts keep their current value."""

    appointment_duration_min: int | None = Field(default=None, gt=0, le=24 * 60)
    shift_template: dict[ShiftType, ShiftWindow | None] | None = None
    weekly: list[WeeklyShiftChange] | None = None


class ConflictingAppointment(SQLModel):
    appointment_id: int
    starts_at: datetime
    ends_at: datetime
    patient_name: str | None = None
    patient_phone: str | None = None
    reason: ConflictReason


class ConflictCheckResult(SQLModel):
    has_conflicts: bool
    conflicting_appointments: list[ConflictingAppointment]
    total_conflicts: int


class DoctorSchedule(SQLModel):
    """A doctor's schedule as stored, every weekday listed."""

    doctor_id: int
    clinic_id: int
    appointment_duration_min: int
    timezone: str
    shift_template: dict[ShiftType, ShiftWindow | None]
    weekly: list[WeeklyShiftChange]
    time_off: list[TimeOffPeriod]
    is_configured: bool
    schedule_configured_at: datetime | None = None
    slots_generated_from: date | None = None
    slots_generated_to: date | None = None


class ScheduleUpdateResult(SQLModel):
    schedule: DoctorSchedule
    cancelled_appointment_ids: list[int] = Field(default_factory=list)
    slots_regenerated: int = 0
    is_first_time_configuration: bool = False


class TimeOffCreate(SQLModel):
    start_date: date
    end_date: date
    type: TimeOffType = TimeOffType.OTHER
    reason: str | None = None
    # cancel booked appointments inside the range instead of refusing
    force_cancel: bool = False


class TimeOffResult(SQLModel):
    time_off: TimeOffPeriod
    cancelled_appointment_ids: list[int] = Field(default_factory=list)
    slots_changed: int = 0
