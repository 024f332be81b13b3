from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clinic_scheduler.models.schedule import ConflictingAppointment


class SchedulingError(Exception):
    """Base class for slot compilation and schedule reconciliation failures."""


class ConfigurationIncomplete(SchedulingError):
    """Doctor has no shift template or no enabled weekly shift. Callers skip, never fail."""


class DataIntegrityViolation(SchedulingError):
    """More than one booked appointment maps onto a single slot instant."""


class ConflictBlocked(SchedulingError):
    """A schedule edit would invalidate booked appointments the caller did not agree to cancel."""

    def __init__(self, message: str, conflicts: list[ConflictingAppointment]):
        super().__init__(message)
        self.conflicts = conflicts


class TransactionFailure(SchedulingError):
    """The persistence layer aborted; nothing from the unit of work was committed."""


class TimezoneAmbiguity(SchedulingError):
    """A local clock value cannot be mapped to a single instant in the clinic timezone."""


class DoctorNotFound(SchedulingError):
    pass


class ScheduleValidationError(SchedulingError):
    pass


class TimeOffNotFound(SchedulingError):
    pass
