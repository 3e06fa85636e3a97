"""Solar self-consumption and export estimates over a date range."""

from datetime import date, timedelta
from pathlib import Path

from ..assets import get_electric_vehicles, get_home_batteries
from ..consumption import get_consumption_with_gaps
from ..solar import generate_solar_forecast, get_solar_config


def _empty_result() -> dict:
    return {
        "days": 0,
        "total_generation_kwh": 0.0,
        "total_consumption_kwh": 0.0,
        "self_consumption_kwh": 0.0,
        "total_export_kwh": 0.0,
        "self_consumption_percentage": 0.0,
        "export_percentage": 0.0,
        "recommendations": [],
    }


def generate_recommendations(
    export_percentage: float, self_consumption_percentage: float, has_battery: bool, has_ev: bool
) -> list[str]:
    recommendations = []

    if export_percentage > 50:
        if not has_battery:
            recommendations.append(
                "Consider adding a home battery to store excess solar energy instead of exporting it to the grid"
            )
        if not has_ev:
            recommendations.append(
                "Consider an electric vehicle to utilize your excess solar generation during the day"
            )
        if has_battery or has_ev:
            recommendations.append(
                "Shift more of your energy usage to midday hours when solar generation is highest"
            )

    if self_consumption_percentage < 30 and export_percentage > 40:
        recommendations.append(
            "Your solar self-consumption is low. Try running appliances like dishwashers and "
            "washing machines during peak solar hours (10 AM - 3 PM)"
        )

    if 30 < export_percentage <= 50 and not has_battery:
        recommendations.append(
            "You're exporting a significant amount of solar. A home battery could help you "
            "use more of your own generation"
        )

    if self_consumption_percentage > 70:
        recommendations.append(
            "Great job! You're using most of your solar generation directly, minimizing grid reliance"
        )

    return recommendations


def calculate_solar_performance(
    user_id: str, start: date, end: date, db_path: Path | None = None
) -> dict | None:
    """Forecast generation against recorded consumption, slot by slot.

    Each slot self-consumes up to its recorded usage and exports the rest.
    Only days with at least one reading are counted. Returns None when the
    user has no solar system.
    """
    config = get_solar_config(user_id, db_path)
    if not config.has_solar:
        return None

    generation = consumption = self_consumed = 0.0
    days = 0
    day = start
    while day <= end:
        slots = get_consumption_with_gaps(user_id, day, db_path, today=end)
        if any(s.consumption_kwh is not None for s in slots):
            days += 1
            forecast = generate_solar_forecast(config, day)
            for interval, slot in zip(forecast.intervals, slots):
                used = slot.consumption_kwh or 0.0
                generation += interval.generation_kwh
                consumption += used
                self_consumed += min(interval.generation_kwh, used)
        day += timedelta(days=1)

    if days == 0:
        return _empty_result()

    exported = generation - self_consumed
    self_pct = self_consumed / generation * 100 if generation > 0 else 0.0
    export_pct = exported / generation * 100 if generation > 0 else 0.0

    return {
        "days": days,
        "total_generation_kwh": round(generation, 2),
        "total_consumption_kwh": round(consumption, 2),
        "self_consumption_kwh": round(self_consumed, 2),
        "total_export_kwh": round(exported, 2),
        "self_consumption_percentage": round(self_pct, 1),
        "export_percentage": round(export_pct, 1),
        "recommendations": generate_recommendations(
            export_pct,
            self_pct,
            has_battery=bool(get_home_batteries(user_id, db_path)),
            has_ev=bool(get_electric_vehicles(user_id, db_path)),
        ),
    }
