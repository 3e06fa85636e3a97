"""Tests for solar self-consumption estimates."""

from datetime import date

import pytest

from energy_advisor.analysis.solar_performance import calculate_solar_performance, generate_recommendations
from energy_advisor.assets import add_home_battery
from energy_advisor.consumption import store_consumption_data
from energy_advisor.intervals import slot_starts
from energy_advisor.models import ConsumptionReading, SolarSystemConfig
from energy_advisor.solar import store_solar_config

DAY = date(2024, 6, 17)
SOUTH_5KW = SolarSystemConfig(has_solar=True, system_size_kw=5.0, tilt_degrees=30, orientation="S")


@pytest.fixture
def solar_user(db_path):
    store_solar_config("user-1", SOUTH_5KW, db_path)
    return "user-1"


def store_flat_day(db_path, value, day=DAY):
    store_consumption_data("user-1", [ConsumptionReading(ts, value) for ts in slot_starts(day)], db_path)


def test_no_solar_returns_none(db_path):
    assert calculate_solar_performance("user-1", DAY, DAY, db_path) is None


def test_no_consumption_is_empty(db_path, solar_user):
    result = calculate_solar_performance(solar_user, DAY, DAY, db_path)
    assert result["days"] == 0
    assert result["total_generation_kwh"] == 0
    assert result["recommendations"] == []


def test_zero_usage_exports_everything(db_path, solar_user):
    store_flat_day(db_path, 0.0)
    result = calculate_solar_performance(solar_user, DAY, DAY, db_path)

    assert result["days"] == 1
    assert result["total_generation_kwh"] > 0
    assert result["self_consumption_kwh"] == 0
    assert result["total_export_kwh"] == result["total_generation_kwh"]
    assert result["export_percentage"] == 100.0
    assert any("home battery" in r for r in result["recommendations"])
    assert any("self-consumption is low" in r for r in result["recommendations"])


def test_heavy_usage_consumes_everything(db_path, solar_user):
    store_flat_day(db_path, 5.0)
    result = calculate_solar_performance(solar_user, DAY, DAY, db_path)

    assert result["self_consumption_percentage"] == 100.0
    assert result["total_export_kwh"] == 0
    assert result["total_consumption_kwh"] == 240.0
    assert result["recommendations"][0].startswith("Great job!")


def test_days_without_data_are_skipped(db_path, solar_user):
    store_flat_day(db_path, 0.5, date(2024, 6, 15))
    store_flat_day(db_path, 0.5, date(2024, 6, 17))
    result = calculate_solar_performance(solar_user, date(2024, 6, 15), date(2024, 6, 17), db_path)
    assert result["days"] == 2
    assert result["total_consumption_kwh"] == 48.0


def test_battery_owner_is_not_told_to_buy_one(db_path, solar_user):
    add_home_battery(solar_user, 5, 10, db_path)
    store_flat_day(db_path, 0.0)
    result = calculate_solar_performance(solar_user, DAY, DAY, db_path)
    assert not any("Consider adding a home battery" in r for r in result["recommendations"])
    assert any("midday" in r for r in result["recommendations"])


def test_recommendations_for_moderate_export():
    recommendations = generate_recommendations(45, 55, has_battery=False, has_ev=True)
    assert len(recommendations) == 1
    assert "home battery could help" in recommendations[0]
