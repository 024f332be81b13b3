"""Compile a doctor's recurring weekly schedule into concrete slots for one date.

Pure and deterministic: the output depends only on (date, ScheduleConfig). All clock
arithmetic is done in whole minutes from local midnight; instants are produced last,
in the clinic timezone.
"""
import logging
from collections.abc import Iterator
from datetime import date, timedelta

from clinic_scheduler.core.errors import TimezoneAmbiguity
from clinic_scheduler.core.timezone import localize
from clinic_scheduler.models.schedule import ScheduleConfig, ShiftType, ShiftWindow
from clinic_scheduler.models.slot import CandidateSlot

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """'HH:MM' -> minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_clock(minute_of_day: int) -> str:
    minute_of_day %= MINUTES_PER_DAY
    return f"{minute_of_day // 60:02d}:{minute_of_day % 60:02d}"


def day_of_week(d: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (d.weekday() + 1) % 7


def window_minutes(window: ShiftWindow) -> tuple[int, int]:
    """(start, end) minutes from local midnight; an end before the start runs past midnight."""
    start = parse_clock(window.start)
    end = parse_clock(window.end)
    if end < start:
        end += MINUTES_PER_DAY
    return start, end


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_time_off(d: date, config: ScheduleConfig) -> bool:
    return any(period.covers(d) for period in config.time_off)


def enabled_windows(d: date, config: ScheduleConfig) -> list[tuple[ShiftType, int, int]]:
    """Shift windows that generate slots on `d`, as local minute ranges."""
    if is_time_off(d, config):
        return []
    dow = day_of_week(d)
    windows: list[tuple[ShiftType, int, int]] = []
    for shift_type in ShiftType:
        template = config.template_for(shift_type)
        if template is None or not config.is_enabled(dow, shift_type):
            continue
        start, end = window_minutes(template)
        windows.append((shift_type, start, end))
    return windows


def compile_slots(d: date, config: ScheduleConfig, strict_dst: bool | None = None) -> list[CandidateSlot]:
    """Candidate slots for clinic-local date `d`, ordered by start instant.

    A trailing remainder shorter than the appointment duration produces no slot.
    Local start times that do not exist (spring-forward) are skipped, or raise
    TimezoneAmbiguity when `strict_dst` (or `config.strict_dst`) is set.
    """
    strict = config.strict_dst if strict_dst is None else strict_dst
    duration = config.appointment_duration_min
    slots: list[CandidateSlot] = []
    for shift_type, start, end in enabled_windows(d, config):
        current = start
        while current + duration <= end:
            starts_at = localize(d, current, config.timezone)
            if starts_at is None:
                if strict:
                    raise TimezoneAmbiguity(
                        f"{d.isoformat()} {format_clock(current)} does not exist in {config.timezone}"
                    )
                logger.debug(
                    "Skipping nonexistent local time %s %s (%s)", d, format_clock(current), config.timezone
                )
            else:
                slots.append(
                    CandidateSlot(
                        doctor_id=config.doctor_id,
                        clinic_id=config.clinic_id,
                        slot_date=d,
                        time=format_clock(current),
                        starts_at=starts_at,
                        ends_at=starts_at + timedelta(minutes=duration),
                        shift_type=shift_type,
                    )
                )
            current += duration
    slots.sort(key=lambda s: s.starts_at)
    return slots


def compile_range(start: date, end: date, config: ScheduleConfig) -> dict[date, list[CandidateSlot]]:
    return {d: compile_slots(d, config) for d in iter_dates(start, end)}
