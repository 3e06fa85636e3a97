"""Tests for EV and home battery configuration."""

import pytest

from energy_advisor.assets import (
    add_electric_vehicle,
    add_home_battery,
    get_available_makes,
    get_available_models,
    get_default_battery_capacity,
    get_electric_vehicles,
    get_home_batteries,
    infer_battery_capacity,
    remove_electric_vehicle,
    remove_home_battery,
)


def test_infer_exact_match():
    assert infer_battery_capacity("Tesla", "Model 3 Long Range") == 75
    assert infer_battery_capacity("tesla", "model s") == 95


def test_infer_partial_match():
    assert infer_battery_capacity("Nissan", "Ariya") == 63
    assert infer_battery_capacity("Hyundai", "Ioniq 5 Limited") == 58


def test_infer_unknown():
    assert infer_battery_capacity("Lada", "Niva") is None


def test_default_capacity_by_class():
    assert get_default_battery_capacity("Cybertruck") == 100
    assert get_default_battery_capacity("Model X Plaid") == 90
    assert get_default_battery_capacity("Something small") == 65


def test_available_makes_and_models():
    assert "Tesla" in get_available_makes()
    assert "Leaf" in get_available_models("nissan")


def test_add_ev_infers_capacity(db_path):
    ev = add_electric_vehicle("user-1", "Nissan", "Leaf", 25, db_path=db_path)

    assert ev.id is not None
    assert ev.battery_capacity_kwh == 40
    assert ev.charging_speed_kw == 7.0
    assert get_electric_vehicles("user-1", db_path) == [ev]


def test_add_ev_unknown_model_uses_default(db_path):
    ev = add_electric_vehicle("user-1", "Lada", "Niva", 25, db_path=db_path)
    assert ev.battery_capacity_kwh == 65


def test_add_ev_rejects_oversized_battery(db_path):
    with pytest.raises(ValueError, match="capacity"):
        add_electric_vehicle("user-1", "Tesla", "Model S", 25, battery_capacity_kwh=250, db_path=db_path)


def test_add_ev_rejects_negative_miles(db_path):
    with pytest.raises(ValueError, match="miles"):
        add_electric_vehicle("user-1", "Tesla", "Model S", -5, db_path=db_path)


def test_add_ev_rejects_zero_charging_speed(db_path):
    with pytest.raises(ValueError, match="Charging speed"):
        add_electric_vehicle("user-1", "Nissan", "Leaf", 30, charging_speed_kw=0, db_path=db_path)
    assert get_electric_vehicles("user-1", db_path) == []


def test_remove_ev_is_scoped_to_user(db_path):
    ev = add_electric_vehicle("user-1", "Tesla", "Model Y Long Range", 40, charging_speed_kw=11, db_path=db_path)

    assert remove_electric_vehicle("user-2", ev.id, db_path) is False
    assert remove_electric_vehicle("user-1", ev.id, db_path) is True
    assert get_electric_vehicles("user-1", db_path) == []


def test_home_battery_crud(db_path):
    battery = add_home_battery("user-1", 5, 13.5, db_path)

    assert get_home_batteries("user-1", db_path) == [battery]
    assert remove_home_battery("user-1", battery.id, db_path) is True
    assert remove_home_battery("user-1", battery.id, db_path) is False


def test_home_battery_rejects_non_positive(db_path):
    with pytest.raises(ValueError):
        add_home_battery("user-1", 0, 10, db_path)
    with pytest.raises(ValueError):
        add_home_battery("user-1", 5, -1, db_path)
