"""Tests for daily chart shading and current status."""

from datetime import date, datetime

from energy_advisor.analysis.daily import (
    DEFAULT_DAILY_KWH,
    calculate_average_daily_consumption,
    calculate_current_status,
    generate_chart_data,
)
from energy_advisor.consumption import store_consumption_data
from energy_advisor.events import DECREASE_CONSUMPTION, save_event
from energy_advisor.intervals import slot_starts
from energy_advisor.models import ConsumptionReading, EnergyEvent, SolarSystemConfig
from energy_advisor.solar import store_solar_config

MONDAY = date(2024, 6, 17)


def store_day(db_path, day, value):
    store_consumption_data("user-1", [ConsumptionReading(ts, value) for ts in slot_starts(day)], db_path)


def row(shading="none", price=0.15, solar=0.0, consumption=0.1):
    return {
        "solar_generation_kwh": solar,
        "consumption_kwh": consumption,
        "price_per_kwh": price,
        "shading": shading,
    }


def test_average_defaults_without_data(db_path):
    assert calculate_average_daily_consumption("user-1", db_path, now=datetime(2024, 6, 17, 12)) == DEFAULT_DAILY_KWH


def test_average_from_last_week(db_path):
    store_day(db_path, date(2024, 6, 15), 0.5)
    store_day(db_path, date(2024, 6, 16), 0.25)
    average = calculate_average_daily_consumption("user-1", db_path, now=datetime(2024, 6, 17, 0, 0))
    assert average == (0.5 * 48 + 0.25 * 48) / 2


def test_chart_has_48_shaded_intervals(db_path):
    data = generate_chart_data("user-1", MONDAY, db_path, now=datetime(2024, 6, 20, 9, 0))

    assert data["date"] == "2024-06-17"
    assert len(data["intervals"]) == 48
    assert data["current_status"] is None
    # No consumption: off-peak slots are unshaded, peak slots are yellow
    assert data["intervals"][0]["shading"] == "none"
    assert data["intervals"][0]["consumption_kwh"] is None
    assert data["intervals"][36]["shading"] == "yellow"


def test_low_off_peak_usage_is_green(db_path):
    store_day(db_path, MONDAY, 0.1)
    data = generate_chart_data("user-1", MONDAY, db_path, now=datetime(2024, 6, 20, 9, 0))

    # Average is 4.8 kWh/day, so the green threshold is 0.05 kWh per slot
    assert data["intervals"][0]["shading"] == "none"

    store_day(db_path, MONDAY, 0.01)
    store_day(db_path, date(2024, 6, 18), 1.0)
    data = generate_chart_data("user-1", MONDAY, db_path, now=datetime(2024, 6, 19, 9, 0))
    assert data["intervals"][0]["shading"] == "green"


def test_solar_surplus_is_green(db_path):
    store_solar_config(
        "user-1", SolarSystemConfig(has_solar=True, system_size_kw=5.0, tilt_degrees=30, orientation="S"), db_path
    )
    store_day(db_path, MONDAY, 0.2)
    data = generate_chart_data("user-1", MONDAY, db_path, now=datetime(2024, 6, 20, 9, 0))
    assert data["intervals"][24]["shading"] == "green"  # 12:00


def test_event_slots_are_red(db_path):
    save_event(
        EnergyEvent(DECREASE_CONSUMPTION, datetime(2024, 6, 17, 21), datetime(2024, 6, 17, 22), "Peak event", 4.5),
        db_path,
    )
    data = generate_chart_data("user-1", MONDAY, db_path, now=datetime(2024, 6, 20, 9, 0))

    assert data["intervals"][42]["shading"] == "red"
    assert data["intervals"][42]["base_shading"] == "yellow"
    assert data["intervals"][44]["shading"] != "red"
    assert len(data["energy_events"]) == 1


def test_current_status_only_for_today(db_path):
    data = generate_chart_data("user-1", MONDAY, db_path, now=datetime(2024, 6, 17, 18, 10))
    status = data["current_status"]

    assert status["current_price"] == 0.30
    assert status["solar_state"] == "low"
    assert status["action_prompt"].startswith("Reduce usage")


def test_status_warns_before_peak():
    intervals = [row("green", price=0.07)] * 2 + [row("yellow", price=0.30)] * 46
    status = calculate_current_status(intervals, datetime(2024, 6, 17, 0, 10), 20.0)
    assert status["action_prompt"].startswith("Good time to use energy now, but prepare to reduce usage in 1 hour.")


def test_status_in_sunny_yellow_slot_never_says_zero_hours():
    current = row("yellow", price=0.15, solar=3.0)
    intervals = [row()] * 20 + [current] + [row("yellow", price=0.15)] * 27
    status = calculate_current_status(intervals, datetime(2024, 6, 17, 10, 0), 20.0)

    assert status["solar_state"] == "high"
    assert "in 0 hours" not in status["action_prompt"]
    assert "prepare to reduce usage in 0.5 hours" in status["action_prompt"]


def test_status_steady_conditions():
    intervals = [row()] * 48
    status = calculate_current_status(intervals, datetime(2024, 6, 17, 10, 0), 20.0)
    assert status["action_prompt"] == "Normal conditions. Steady rates expected for the next few hours."
    assert status["consumption_state"] == "low"
