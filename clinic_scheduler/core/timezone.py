"""Clinic-local time helpers.

Every date/time the scheduler reasons about belongs to the clinic's IANA zone, not
the server's or the caller's. Instants are carried as aware UTC datetimes inside the
domain and stored as naive UTC in TIMESTAMP WITHOUT TIME ZONE columns.
"""
from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clinic_scheduler.core.errors import TimezoneAmbiguity


@lru_cache(maxsize=64)
def get_zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise TimezoneAmbiguity(f"Unknown IANA timezone: {timezone!r}") from e


def as_utc(dt: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to already be UTC (DB convention)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def utc_now() -> datetime:
    return datetime.now(UTC)


def local_datetime(instant: datetime, timezone: str) -> datetime:
    return as_utc(instant).astimezone(get_zone(timezone))


def local_date(instant: datetime, timezone: str) -> date:
    return local_datetime(instant, timezone).date()


def local_clock(instant: datetime, timezone: str) -> str:
    """HH:MM wall-clock label of an instant in the clinic timezone."""
    return local_datetime(instant, timezone).strftime("%H:%M")


def clinic_today(now: datetime, timezone: str) -> date:
    return local_date(now, timezone)


def localize(d: date, minute_of_day: int, timezone: str) -> datetime | None:
    """Absolute UTC instant for `minute_of_day` minutes after local midnight of `d`.

    minute_of_day may exceed 1440 for overnight shifts; it then rolls onto the next
    calendar day. Returns None when the wall-clock time does not exist (spring-forward
    gap). Ambiguous fall-back times resolve to the earliest occurrence (fold=0).
    """
    day_offset, minute = divmod(minute_of_day, 24 * 60)
    target = d + timedelta(days=day_offset)
    zone = get_zone(timezone)
    local = datetime.combine(target, time(minute // 60, minute % 60), tzinfo=zone)
    instant = local.astimezone(UTC)
    # A nonexistent local time does not survive the round trip
    if instant.astimezone(zone).replace(tzinfo=None) != local.replace(tzinfo=None):
        return None
    return instant


def start_of_local_day(d: date, timezone: str) -> datetime:
    """First instant of the clinic-local calendar day (midnight itself may be skipped by DST)."""
    for minute in range(0, 24 * 60, 15):
        instant = localize(d, minute, timezone)
        if instant is not None:
            return instant
    raise TimezoneAmbiguity(f"No valid local time on {d.isoformat()} in {timezone}")


def end_of_local_year(d: date) -> date:
    return date(d.year, 12, 31)
