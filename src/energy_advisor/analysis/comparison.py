"""Household comparison, energy personality and event participation."""

from datetime import datetime, time, timedelta
from pathlib import Path

from ..consumption import get_consumption_for_range
from ..events import INCREASE_CONSUMPTION, list_events
from ..models import ConsumptionReading
from ..solar import get_solar_config

COMPARISON_DAYS = 30
REFERENCE_DAILY_KWH = 20.0
BASELINE_DAYS = 7
EVENT_HISTORY_LIMIT = 10

PERSONALITIES = {
    "SOLAR_CHAMPION": (
        "You maximize your solar generation by using energy during peak sun hours. Keep up the great work!",
        "☀️",
    ),
    "NIGHT_OWL": (
        "You shift most of your energy use to off-peak hours, taking advantage of lower rates. Smart strategy!",
        "🦉",
    ),
    "PEAK_AVOIDER": (
        "You successfully avoid peak hours, helping reduce grid strain and your electricity costs.",
        "🎯",
    ),
    "GRID_CONSCIOUS": (
        "You spread your energy use throughout the day, helping balance grid demand.",
        "⚡",
    ),
    "BALANCED_USER": (
        "You have a balanced energy usage pattern across different times of day.",
        "⚖️",
    ),
}


def _bucket(hour: int) -> str | None:
    if 16 <= hour < 21:
        return "peak"
    if hour >= 22 or hour < 6:
        return "off_peak"
    if 10 <= hour < 15:
        return "midday"
    if 18 <= hour < 23:
        return "night"
    return None


def assign_energy_personality(readings: list[ConsumptionReading], has_solar: bool = False) -> dict:
    """Label a usage pattern by where in the day the energy goes."""
    totals = {"peak": 0.0, "off_peak": 0.0, "midday": 0.0, "night": 0.0}
    for reading in readings:
        bucket = _bucket(reading.timestamp.hour)
        if bucket:
            totals[bucket] += reading.consumption_kwh

    total = sum(r.consumption_kwh for r in readings)
    ratios = {k: (v / total if total > 0 else 0.0) for k, v in totals.items()}

    if has_solar and ratios["midday"] > 0.35:
        name = "SOLAR_CHAMPION"
    elif ratios["off_peak"] > 0.45:
        name = "NIGHT_OWL"
    elif ratios["peak"] < 0.20:
        name = "PEAK_AVOIDER"
    elif ratios["night"] > 0.40:
        name = "GRID_CONSCIOUS"
    else:
        name = "BALANCED_USER"

    description, visual = PERSONALITIES[name]
    return {"personality": name, "description": description, "visual": visual}


def _window_kwh(readings: list[ConsumptionReading], start: datetime, end: datetime) -> float:
    return sum(r.consumption_kwh for r in readings if start <= r.timestamp < end)


def get_event_participation(
    user_id: str, db_path: Path | None = None, now: datetime | None = None
) -> list[dict]:
    """Past events with the user's usage change against the prior week's same window.

    The incentive counts as earned when usage moved in the direction the
    event asked for.
    """
    now = now or datetime.now()
    past = [e for e in list_events(db_path) if e.end_time <= now and e.targets(user_id)]
    past.sort(key=lambda e: e.start_time, reverse=True)

    history = []
    for event in past[:EVENT_HISTORY_LIMIT]:
        readings = get_consumption_for_range(
            user_id, event.start_time - timedelta(days=BASELINE_DAYS), event.end_time, db_path
        )
        if not readings:
            continue

        actual = _window_kwh(readings, event.start_time, event.end_time)
        baseline_days = [
            _window_kwh(readings, event.start_time - timedelta(days=d), event.end_time - timedelta(days=d))
            for d in range(1, BASELINE_DAYS + 1)
        ]
        baseline = sum(baseline_days) / len(baseline_days)
        delta = actual - baseline

        if event.event_type == INCREASE_CONSUMPTION:
            earned = event.incentive_amount if delta > 0 else 0.0
        else:
            earned = event.incentive_amount if delta < 0 else 0.0

        history.append({
            "event_id": event.id,
            "event_date": event.start_time.date().isoformat(),
            "event_type": event.event_type,
            "performance_delta_kwh": round(delta, 2),
            "incentive_earned": round(earned, 2),
        })

    return history


def calculate_household_comparison(
    user_id: str, db_path: Path | None = None, now: datetime | None = None
) -> dict:
    """Compare the last 30 days against a reference household."""
    end = now or datetime.now()
    start = datetime.combine((end - timedelta(days=COMPARISON_DAYS)).date(), time.min)
    readings = get_consumption_for_range(user_id, start, end, db_path)

    total_kwh = sum(r.consumption_kwh for r in readings)
    days_count = len({r.timestamp.date() for r in readings})
    average = total_kwh / days_count if days_count > 0 else 0.0

    has_solar = get_solar_config(user_id, db_path).has_solar

    return {
        "user_id": user_id,
        "days": days_count,
        "user_average_daily_kwh": round(average, 2),
        "similar_household_average_kwh": REFERENCE_DAILY_KWH,
        "comparison_percentage": round((average - REFERENCE_DAILY_KWH) / REFERENCE_DAILY_KWH * 100, 1),
        "personality": assign_energy_personality(readings, has_solar),
        "event_history": get_event_participation(user_id, db_path, end),
    }


def format_comparison_text(comparison: dict) -> str:
    """Format a household comparison as human-readable text."""
    pct = comparison["comparison_percentage"]
    direction = "above" if pct > 0 else "below" if pct < 0 else "equal to"
    personality = comparison["personality"]

    lines = [
        f"Household Comparison ({comparison['days']} days of data)",
        f"- Your average: {comparison['user_average_daily_kwh']} kWh/day",
        f"- Similar households: {comparison['similar_household_average_kwh']} kWh/day",
        f"- You are {abs(pct)}% {direction} average" if pct else "- You are equal to average",
        "",
        f"Energy personality: {personality['visual']} {personality['personality'].replace('_', ' ').title()}",
        f"  {personality['description']}",
    ]

    if comparison["event_history"]:
        lines.extend(["", "Recent events:"])
        for entry in comparison["event_history"]:
            lines.append(
                f"  - {entry['event_date']} {entry['event_type']}: "
                f"{entry['performance_delta_kwh']:+.2f} kWh, earned ${entry['incentive_earned']:.2f}"
            )

    return "\n".join(lines)
