"""Tests for the command-line interface."""

import json

from click.testing import CliRunner

from energy_advisor.cli import cli


def run(db_path, *args):
    result = CliRunner().invoke(cli, ["--db-path", str(db_path), *args])
    assert result.exit_code == 0, result.output
    return result.output


def test_db_init(tmp_path):
    output = run(tmp_path / "new.db", "db", "init")
    assert "Database initialized" in output
    assert (tmp_path / "new.db").exists()


def test_tariff_show_json(db_path):
    intervals = json.loads(run(db_path, "tariff", "show", "--user", "user-1", "--date", "2024-06-17", "--json"))
    assert len(intervals) == 48
    assert intervals[0]["price_per_kwh"] == 0.07
    assert intervals[36]["period_name"] == "peak"


def test_tariff_load_from_bundled_config(db_path):
    assert "Loaded tariff with 5 period(s)" in run(db_path, "tariff", "load", "--user", "user-1")


def test_solar_set_rejects_incomplete(db_path):
    output = run(db_path, "solar", "set", "--user", "user-1", "--size", "5")
    assert "Error" in output


def test_solar_forecast_json(db_path):
    run(db_path, "solar", "set", "--user", "user-1", "--size", "5", "--tilt", "30", "--orientation", "s")
    data = json.loads(run(db_path, "solar", "forecast", "--user", "user-1", "--date", "2024-06-21", "--json"))
    assert data["today"]["date"] == "2024-06-21"
    assert data["tomorrow"]["date"] == "2024-06-22"
    assert data["today"]["intervals"][24]["generation_kwh"] > 0


def test_ev_add_list_remove(db_path):
    output = run(
        db_path, "ev", "add", "--user", "user-1", "--make", "Nissan", "--model", "Leaf",
        "--miles", "30", "--capacity", "40",
    )
    assert "Added Nissan Leaf (#1, 40 kWh)" in output
    assert "Nissan Leaf" in run(db_path, "ev", "list", "--user", "user-1")
    assert "Removed vehicle #1" in run(db_path, "ev", "remove", "--user", "user-1", "1")
    assert "No electric vehicles" in run(db_path, "ev", "list", "--user", "user-1")


def test_advice_json(db_path):
    run(db_path, "battery", "add", "--user", "user-1", "--power", "5", "--capacity", "10")
    data = json.loads(run(db_path, "advice", "--user", "user-1", "--date", "2024-06-17", "--json"))
    assert set(data) == {"general_advice", "ev_advice", "battery_advice"}
    assert data["ev_advice"] == []
    assert data["battery_advice"]


def test_consumption_show_json_has_gaps(db_path):
    slots = json.loads(run(db_path, "consumption", "show", "--user", "user-1", "--date", "2024-06-17", "--json"))
    assert len(slots) == 48
    assert all(s["consumption_kwh"] is None for s in slots)


def test_events_seed_and_list(db_path):
    assert "Seeded 2 energy events" in run(db_path, "events", "seed", "--days", "4")
    assert "INCREASE_CONSUMPTION" in run(db_path, "events", "list")


def test_chart_json_for_past_day(db_path):
    data = json.loads(run(db_path, "chart", "--user", "user-1", "--date", "2024-06-17", "--json"))
    assert len(data["intervals"]) == 48
    assert data["current_status"] is None


def test_compare_text(db_path):
    assert "Household Comparison" in run(db_path, "compare", "--user", "user-1")
