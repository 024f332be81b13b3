from clinic_scheduler.models.clinic import Clinic
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.patient import Patient
from clinic_scheduler.models.appointment import Appointment, AppointmentStatus
from clinic_scheduler.models.schedule import (
    ConflictCheckResult,
    ConflictingAppointment,
    ConflictReason,
    DoctorSchedule,
    DoctorShiftTemplate,
    DoctorTimeOff,
    DoctorWeeklyShift,
    ScheduleChanges,
    ScheduleConfig,
    ScheduleUpdateResult,
    ShiftType,
    ShiftWindow,
    TimeOffCreate,
    TimeOffPeriod,
    TimeOffResult,
    TimeOffType,
    WeeklyShift,
    WeeklyShiftChange,
)
from clinic_scheduler.models.slot import AnnotatedSlot, CandidateSlot, DaySlots, Slot, SlotsSummary, SlotStatus

__all__ = [
    "Clinic",
    "Doctor",
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "ConflictCheckResult",
    "ConflictingAppointment",
    "ConflictReason",
    "DoctorSchedule",
    "DoctorShiftTemplate",
    "DoctorTimeOff",
    "DoctorWeeklyShift",
    "ScheduleChanges",
    "ScheduleConfig",
    "ScheduleUpdateResult",
    "ShiftType",
    "ShiftWindow",
    "TimeOffCreate",
    "TimeOffPeriod",
    "TimeOffResult",
    "TimeOffType",
    "WeeklyShift",
    "WeeklyShiftChange",
    "AnnotatedSlot",
    "CandidateSlot",
    "DaySlots",
    "Slot",
    "SlotsSummary",
    "SlotStatus",
]
