"""The half-hour interval grid shared by every per-day series.

A day is always 48 slots. Slot ``i`` starts at local midnight + ``i`` * 30
minutes, so tariff, solar and consumption series for the same date can be
zipped positionally.
"""

from datetime import date, datetime, time, timedelta

SLOTS_PER_DAY = 48
SLOT_MINUTES = 30
SLOT_HOURS = SLOT_MINUTES / 60

_DAY_TOKENS = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]


def as_date(value: date | datetime) -> date:
    """Truncate a datetime to its calendar date (dates pass through)."""
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_day(value: date | datetime) -> datetime:
    """Local midnight at the start of the given day."""
    return datetime.combine(as_date(value), time.min)


def format_time(hour: int, minute: int) -> str:
    """Format as HH:MM, wrapping hour 24 to 00."""
    return f"{hour % 24:02d}:{minute:02d}"


def slot_label(index: int) -> tuple[str, str]:
    """Return the (start, end) HH:MM labels for a slot index."""
    start_minutes = index * SLOT_MINUTES
    end_minutes = start_minutes + SLOT_MINUTES
    return (
        format_time(start_minutes // 60, start_minutes % 60),
        format_time(end_minutes // 60, end_minutes % 60),
    )


def slot_starts(day: date | datetime) -> list[datetime]:
    """The 48 slot start datetimes for a day."""
    midnight = start_of_day(day)
    return [midnight + timedelta(minutes=i * SLOT_MINUTES) for i in range(SLOTS_PER_DAY)]


def slot_windows(day: date | datetime) -> list[tuple[datetime, datetime]]:
    """The 48 contiguous (start, end) windows, ending at the next midnight."""
    step = timedelta(minutes=SLOT_MINUTES)
    return [(start, start + step) for start in slot_starts(day)]


def slot_index(dt: datetime) -> int:
    """Index of the slot containing a wall-clock time."""
    return (dt.hour * 60 + dt.minute) // SLOT_MINUTES


def slot_midpoint_hour(index: int) -> float:
    """Fractional hour at the middle of a slot (slot 0 -> 0.25)."""
    return index * SLOT_HOURS + SLOT_HOURS / 2


def day_of_week_token(day: date | datetime) -> str:
    """MON..SUN token for a date."""
    return _DAY_TOKENS[as_date(day).weekday()]
