"""Solar generation forecast and solar configuration storage.

A simplified model: day length follows a sinusoid over the year, irradiance
follows a half-sine between sunrise and sunset, and panel orientation and
tilt scale the output. It is a heuristic, not an irradiance simulation.
"""

import logging
import math
from datetime import date, datetime, timedelta
from pathlib import Path

from .db import get_connection
from .intervals import SLOT_HOURS, as_date, slot_midpoint_hour, slot_windows
from .models import ORIENTATIONS, SolarForecast, SolarInterval, SolarSystemConfig

logger = logging.getLogger(__name__)

BASE_EFFICIENCY = 0.85  # inverter losses, temperature effects
PEAK_IRRADIANCE = 1.0  # kW/m² (standard test conditions)
DEFAULT_LATITUDE = 40.0

EQUINOX_DAY_LENGTH = 12.0
DAY_LENGTH_AMPLITUDE = 4.0
SPRING_EQUINOX_DAY = 80

ORIENTATION_FACTORS = {
    "N": 0.7,
    "NE": 0.8,
    "NW": 0.8,
    "E": 0.85,
    "W": 0.85,
    "SE": 0.95,
    "SW": 0.95,
    "S": 1.0,
}
DEFAULT_ORIENTATION_FACTOR = 0.85


def get_orientation_factor(orientation: str) -> float:
    """Output factor for a compass orientation; south-facing is best."""
    return ORIENTATION_FACTORS.get(orientation, DEFAULT_ORIENTATION_FACTOR)


def get_tilt_factor(tilt_degrees: float, latitude: float = DEFAULT_LATITUDE) -> float:
    """Output factor for panel tilt, best when tilt equals latitude. Never below 0.7."""
    factor = 1.0 - (abs(tilt_degrees - latitude) / 90) * 0.3
    return max(0.7, min(1.0, factor))


def get_sunrise_sunset(day: date | datetime) -> tuple[float, float]:
    """Sunrise and sunset as fractional hours from midnight."""
    day_of_year = as_date(day).timetuple().tm_yday
    day_length = EQUINOX_DAY_LENGTH + DAY_LENGTH_AMPLITUDE * math.sin(
        (day_of_year - SPRING_EQUINOX_DAY) * 2 * math.pi / 365
    )
    return 12 - day_length / 2, 12 + day_length / 2


def get_irradiance_factor(hour: float, sunrise: float, sunset: float) -> float:
    """Fraction of peak irradiance at a fractional hour (0 outside daylight)."""
    if hour < sunrise or hour >= sunset:
        return 0.0
    solar_angle = (hour - sunrise) / (sunset - sunrise) * math.pi
    return max(0.0, math.sin(solar_angle))


def generate_solar_forecast(config: SolarSystemConfig, day: date | datetime | None = None) -> SolarForecast:
    """Forecast 48 half-hour slots of generation for a day."""
    target = as_date(day) if day is not None else date.today()
    windows = slot_windows(target)

    if not config.is_complete:
        return SolarForecast(
            date=target,
            intervals=[SolarInterval(start, end, 0.0) for start, end in windows],
        )

    sunrise, sunset = get_sunrise_sunset(target)
    orientation_factor = get_orientation_factor(config.orientation)
    tilt_factor = get_tilt_factor(config.tilt_degrees)

    intervals = []
    for i, (start, end) in enumerate(windows):
        irradiance = get_irradiance_factor(slot_midpoint_hour(i), sunrise, sunset)
        generation_kw = (
            config.system_size_kw
            * PEAK_IRRADIANCE
            * irradiance
            * BASE_EFFICIENCY
            * orientation_factor
            * tilt_factor
        )
        intervals.append(SolarInterval(start, end, max(0.0, generation_kw * SLOT_HOURS)))

    return SolarForecast(date=target, intervals=intervals)


def generate_daily_forecasts(config: SolarSystemConfig, today: date | None = None) -> dict:
    """Forecasts for today and tomorrow."""
    today = today or date.today()
    return {
        "today": generate_solar_forecast(config, today),
        "tomorrow": generate_solar_forecast(config, today + timedelta(days=1)),
    }


def calculate_total_generation(forecast: SolarForecast) -> float:
    """Total kWh across all slots of a forecast."""
    return sum(interval.generation_kwh for interval in forecast.intervals)


def get_generation_at_time(forecast: SolarForecast, when: datetime) -> float:
    """Generation of the slot containing ``when``; 0 outside the forecast day."""
    for interval in forecast.intervals:
        if interval.start_time <= when < interval.end_time:
            return interval.generation_kwh
    return 0.0


def validate_solar_config(config: SolarSystemConfig) -> None:
    """Raise ValueError unless the config satisfies the has_solar invariant."""
    fields = (config.system_size_kw, config.tilt_degrees, config.orientation)
    if not config.has_solar:
        if any(f is not None for f in fields):
            raise ValueError("Solar details must be empty when has_solar is false")
        return

    if any(f is None for f in fields):
        raise ValueError("System size, tilt and orientation are required when has_solar is true")
    if config.system_size_kw <= 0:
        raise ValueError("System size must be positive")
    if not 0 <= config.tilt_degrees <= 90:
        raise ValueError("Tilt must be between 0 and 90 degrees")
    if config.orientation not in ORIENTATIONS:
        raise ValueError(f"Orientation must be one of {', '.join(ORIENTATIONS)}")


def store_solar_config(user_id: str, config: SolarSystemConfig, db_path: Path | None = None) -> None:
    """Create or replace a user's solar configuration."""
    validate_solar_config(config)
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT OR REPLACE INTO solar_systems
               (user_id, has_solar, system_size_kw, tilt_degrees, orientation)
               VALUES (?, ?, ?, ?, ?)""",
            (
                user_id,
                int(config.has_solar),
                config.system_size_kw,
                config.tilt_degrees,
                config.orientation,
            ),
        )
        conn.commit()
    logger.info("Stored solar config for %s (has_solar=%s)", user_id, config.has_solar)


def get_solar_config(user_id: str, db_path: Path | None = None) -> SolarSystemConfig:
    """Get a user's solar configuration; users without one have no solar."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT has_solar, system_size_kw, tilt_degrees, orientation FROM solar_systems WHERE user_id = ?",
            (user_id,),
        ).fetchone()

    if not row:
        return SolarSystemConfig(has_solar=False)

    return SolarSystemConfig(
        has_solar=bool(row["has_solar"]),
        system_size_kw=row["system_size_kw"],
        tilt_degrees=row["tilt_degrees"],
        orientation=row["orientation"],
    )
