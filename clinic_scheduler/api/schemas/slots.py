from datetime import date, datetime

from pydantic import BaseModel

from clinic_scheduler.models.schedule import ShiftType
from clinic_scheduler.models.slot import AnnotatedSlot, DaySlots, SlotStatus


class SlotInfo(BaseModel):
    time: str  # HH:MM clinic-local
    starts_at: datetime
    ends_at: datetime
    shift_type: ShiftType
    status: SlotStatus
    is_past: bool
    is_available: bool
    appointment_id: int | None = None

    @classmethod
    def from_slot(cls, slot: AnnotatedSlot) -> "SlotInfo":
        return cls(
            time=slot.time,
            starts_at=slot.starts_at,
            ends_at=slot.ends_at,
            shift_type=slot.shift_type,
            status=slot.status,
            is_past=slot.is_past,
            is_available=slot.is_available,
            appointment_id=slot.appointment_id,
        )


class DaySlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    slots: list[SlotInfo]

    @classmethod
    def from_day(cls, day: DaySlots) -> "DaySlotsResponse":
        return cls(date=day.day.isoformat(), slots=[SlotInfo.from_slot(s) for s in day.slots])


class SlotRangeResponse(BaseModel):
    start_date: date
    end_date: date
    days: list[DaySlotsResponse]
