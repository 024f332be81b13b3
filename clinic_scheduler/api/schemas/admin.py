from datetime import date

from pydantic import BaseModel, model_validator

from clinic_scheduler.services.bulk_regenerator import DoctorRegenerationResult


class RegenerateRequest(BaseModel):
    clinic_id: int | None = None
    doctor_id: int | None = None
    start_date: date | None = None  # default: clinic-local today
    end_date: date | None = None  # default: Dec 31 of start_date's year

    @model_validator(mode="after")
    def _one_target(self) -> "RegenerateRequest":
        if (self.clinic_id is None) == (self.doctor_id is None):
            raise ValueError("Exactly one of clinic_id or doctor_id is required")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RegenerateResponse(BaseModel):
    start_date: date
    end_date: date
    total_created: int
    succeeded: int
    skipped: int
    failed: int
    doctors: list[DoctorRegenerationResult]
