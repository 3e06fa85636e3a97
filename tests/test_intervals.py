"""Tests for the half-hour interval grid."""

from datetime import date, datetime

from energy_advisor.intervals import (
    SLOTS_PER_DAY,
    as_date,
    day_of_week_token,
    format_time,
    slot_index,
    slot_label,
    slot_midpoint_hour,
    slot_starts,
    slot_windows,
)


def test_slot_starts_cover_the_day():
    """48 starts from local midnight, 30 minutes apart."""
    starts = slot_starts(date(2024, 6, 21))
    assert len(starts) == SLOTS_PER_DAY
    assert starts[0] == datetime(2024, 6, 21, 0, 0)
    assert starts[1] == datetime(2024, 6, 21, 0, 30)
    assert starts[-1] == datetime(2024, 6, 21, 23, 30)


def test_slot_windows_are_contiguous():
    """Each window ends where the next starts; the last ends at next midnight."""
    windows = slot_windows(date(2024, 6, 21))
    for (_, end), (next_start, _) in zip(windows, windows[1:]):
        assert end == next_start
    assert windows[-1][1] == datetime(2024, 6, 22, 0, 0)


def test_slot_label_wraps_last_slot():
    assert slot_label(0) == ("00:00", "00:30")
    assert slot_label(35) == ("17:30", "18:00")
    assert slot_label(47) == ("23:30", "00:00")


def test_format_time_hour_24():
    assert format_time(24, 0) == "00:00"
    assert format_time(7, 5) == "07:05"


def test_slot_index():
    assert slot_index(datetime(2024, 1, 1, 0, 0)) == 0
    assert slot_index(datetime(2024, 1, 1, 0, 29)) == 0
    assert slot_index(datetime(2024, 1, 1, 17, 45)) == 35
    assert slot_index(datetime(2024, 1, 1, 23, 59)) == 47


def test_slot_midpoint_hour():
    assert slot_midpoint_hour(0) == 0.25
    assert slot_midpoint_hour(24) == 12.25


def test_day_of_week_token():
    assert day_of_week_token(date(2024, 6, 17)) == "MON"
    assert day_of_week_token(datetime(2024, 6, 22, 13, 0)) == "SAT"


def test_as_date_truncates_datetimes():
    assert as_date(datetime(2024, 6, 21, 23, 59)) == date(2024, 6, 21)
    assert as_date(date(2024, 6, 21)) == date(2024, 6, 21)
