"""Tests for consumption storage, sync and gap handling."""

import random
from datetime import date, datetime, timedelta

import pytest

from energy_advisor.collectors.provider import AccountRegistry, MockEnergyProvider, ProviderError
from energy_advisor.consumption import (
    cleanup_old_data,
    fetch_consumption_data,
    get_consumption_for_date,
    get_consumption_with_gaps,
    get_energy_account,
    has_consumption_data,
    link_energy_account,
    store_consumption_data,
    sync_consumption_data,
)
from energy_advisor.intervals import slot_starts
from energy_advisor.models import ConsumptionReading

DAY = date(2024, 6, 17)


class FlakyProvider:
    """Fails a fixed number of times before returning readings."""

    def __init__(self, failures, readings=None, error=None):
        self.failures = failures
        self.readings = readings or []
        self.error = error or ConnectionError("upstream unavailable")
        self.calls = 0

    def get_consumption_data(self, account_id, start, end):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.readings


@pytest.fixture
def linked_user(db_path):
    provider = MockEnergyProvider(AccountRegistry())
    link_energy_account("user-1", "ACC001", "password123", provider=provider, db_path=db_path)
    return "user-1"


def full_day(day=DAY, value=0.5):
    return [ConsumptionReading(ts, value) for ts in slot_starts(day)]


def test_store_is_upsert(db_path):
    ts = datetime(2024, 6, 17, 10, 0)
    store_consumption_data("user-1", [ConsumptionReading(ts, 1.0)], db_path)
    store_consumption_data("user-1", [ConsumptionReading(ts, 2.5)], db_path)

    readings = get_consumption_for_date("user-1", DAY, db_path)
    assert len(readings) == 1
    assert readings[0].consumption_kwh == 2.5


def test_gaps_are_explicit_none(db_path):
    """A day with two missing readings has exactly two None slots."""
    readings = full_day()
    del readings[30]
    del readings[10]
    store_consumption_data("user-1", readings, db_path)

    slots = get_consumption_with_gaps("user-1", DAY, db_path, today=DAY)
    assert len(slots) == 48
    assert [i for i, s in enumerate(slots) if s.consumption_kwh is None] == [10, 30]
    assert slots[0].consumption_kwh == 0.5


def test_no_data_is_all_none(db_path):
    slots = get_consumption_with_gaps("user-1", DAY, db_path, today=DAY)
    assert all(s.consumption_kwh is None for s in slots)
    assert not has_consumption_data("user-1", DAY, db_path)


def test_future_date_uses_weekly_average(db_path):
    today = DAY
    store_consumption_data("user-1", full_day(today - timedelta(days=1), 1.0), db_path)
    store_consumption_data("user-1", full_day(today - timedelta(days=2), 2.0), db_path)
    # Only one day has a reading at 00:00 on the 3rd day back
    store_consumption_data(
        "user-1", [ConsumptionReading(datetime(2024, 6, 14, 0, 0), 0.333)], db_path
    )

    slots = get_consumption_with_gaps("user-1", today + timedelta(days=1), db_path, today=today)
    assert slots[0].timestamp == datetime(2024, 6, 18, 0, 0)
    assert slots[0].consumption_kwh == round((1.0 + 2.0 + 0.333) / 3, 2)
    assert slots[1].consumption_kwh == 1.5


def test_future_date_without_history_is_all_none(db_path):
    slots = get_consumption_with_gaps("user-1", DAY + timedelta(days=3), db_path, today=DAY)
    assert len(slots) == 48
    assert all(s.consumption_kwh is None for s in slots)


def test_today_is_not_estimated(db_path):
    store_consumption_data("user-1", full_day(DAY - timedelta(days=1), 1.0), db_path)
    slots = get_consumption_with_gaps("user-1", DAY, db_path, today=DAY)
    assert all(s.consumption_kwh is None for s in slots)


def test_cleanup_removes_old_readings(db_path):
    now = datetime(2024, 6, 17, 12, 0)
    store_consumption_data("user-1", full_day(date(2024, 5, 1)), db_path)
    store_consumption_data("user-1", full_day(date(2024, 6, 10)), db_path)

    deleted = cleanup_old_data("user-1", db_path, now=now)

    assert deleted == 48
    assert not has_consumption_data("user-1", date(2024, 5, 1), db_path)
    assert has_consumption_data("user-1", date(2024, 6, 10), db_path)


def test_link_account_with_bad_password(db_path):
    provider = MockEnergyProvider(AccountRegistry())
    result = link_energy_account("user-1", "ACC001", "wrong", provider=provider, db_path=db_path)
    assert result["success"] is False
    assert get_energy_account("user-1", db_path) is None


def test_fetch_requires_linked_account(db_path):
    with pytest.raises(ProviderError, match="not linked"):
        fetch_consumption_data("user-1", datetime(2024, 6, 1), datetime(2024, 6, 2), FlakyProvider(0), db_path)


def test_fetch_retries_with_linear_backoff(db_path, linked_user):
    delays = []
    provider = FlakyProvider(failures=2, readings=full_day())

    readings = fetch_consumption_data(
        linked_user, datetime(2024, 6, 17), datetime(2024, 6, 18), provider, db_path, sleep=delays.append
    )

    assert len(readings) == 48
    assert provider.calls == 3
    assert delays == [1.0, 2.0]


def test_fetch_gives_up_after_three_attempts(db_path, linked_user):
    delays = []
    provider = FlakyProvider(failures=5)

    with pytest.raises(ProviderError, match="upstream unavailable"):
        fetch_consumption_data(
            linked_user, datetime(2024, 6, 17), datetime(2024, 6, 18), provider, db_path, sleep=delays.append
        )
    assert provider.calls == 3
    assert delays == [1.0, 2.0]


def test_sync_stores_and_reports_errors(db_path, linked_user):
    now = datetime(2024, 6, 17, 12, 0)
    provider = MockEnergyProvider(AccountRegistry(), rng=random.Random(1))

    result = sync_consumption_data(linked_user, days=2, provider=provider, db_path=db_path, now=now)
    assert result["errors"] == []
    assert result["synced"] == 3 * 48
    assert has_consumption_data(linked_user, DAY, db_path)

    failing = sync_consumption_data(
        linked_user, days=2, provider=FlakyProvider(failures=3), db_path=db_path,
        sleep=lambda _: None, now=now,
    )
    assert failing["synced"] == 0
    assert len(failing["errors"]) == 1
