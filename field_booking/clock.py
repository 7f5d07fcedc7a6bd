"""Local wall clock and the time arithmetic shared by the booking rules."""

import datetime
from zoneinfo import ZoneInfo

from . import config

MINUTES_PER_DAY = 24 * 60


def local_now() -> datetime.datetime:
    """Current wall-clock time in the club's timezone, as a naive datetime."""
    return datetime.datetime.now(ZoneInfo(config.LOCAL_TZ)).replace(tzinfo=None)


def to_minutes(value: datetime.time) -> int:
    return value.hour * 60 + value.minute


def slot_bounds(start: datetime.time, end: datetime.time) -> tuple[int, int]:
    """Half-open [start, end) in minutes since midnight.

    An end that is not after its start belongs to the following midnight,
    so the 23:00 slot maps to (1380, 1440).
    """
    s = to_minutes(start)
    e = to_minutes(end)
    if e <= s:
        e += MINUTES_PER_DAY
    return s, e


def add_duration(start: datetime.time, duration: datetime.timedelta) -> datetime.time:
    return (datetime.datetime.combine(datetime.date.min, start) + duration).time()


def whole_hours_until(
    booking_date: datetime.date, start: datetime.time, now: datetime.datetime
) -> int:
    """Whole hours from `now` to the slot start, truncated toward zero."""
    delta = datetime.datetime.combine(booking_date, start) - now
    return int(delta.total_seconds() / 3600)
