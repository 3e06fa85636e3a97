"""Device-category estimates from an aggregate consumption series.

Each detector is a pure function over the ordered half-hourly series and
returns a kWh estimate; ``disaggregate_readings`` composes them. These are
statistical pattern matchers, not physical models, and cannot be validated
without sub-metering.
"""

from datetime import datetime
from pathlib import Path

from ..assets import get_electric_vehicles
from ..consumption import get_consumption_for_range
from ..models import ConsumptionReading, DisaggregationResult

BASELOAD_PERCENTILE = 0.10

# HVAC: elevated runs of at least 3 intervals
HVAC_LOW_MULTIPLIER = 1.5
HVAC_HIGH_MULTIPLIER = 3.0
HVAC_CONTINUATION_MULTIPLIER = 1.3
HVAC_MIN_RUN = 3
HVAC_LOOKAHEAD = 3
HVAC_ATTRIBUTION = 0.6

# Water heater: morning and evening draws over 1 kWh
WATER_HEATER_WINDOWS = [(6, 9), (18, 21)]
WATER_HEATER_THRESHOLD_KWH = 1.0
WATER_HEATER_SHARE = 0.15
WATER_HEATER_CAP_KWH = 1.5

# EV: sustained 2x-average draw overnight or midday
EV_MULTIPLIER = 2.0
EV_MIN_SESSION = 4
EV_MAX_SESSION = 12
EV_ATTRIBUTION = 0.7


def average_consumption(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def percentile(values: list[float], fraction: float) -> float:
    """Nearest-rank percentile (fraction in 0..1)."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = min(len(ordered) - 1, int(len(ordered) * fraction))
    return ordered[index]


def estimate_baseload(readings: list[ConsumptionReading]) -> float:
    """10th-percentile interval value times the number of intervals."""
    values = [r.consumption_kwh for r in readings]
    return percentile(values, BASELOAD_PERCENTILE) * len(values)


def estimate_hvac(readings: list[ConsumptionReading]) -> float:
    """60% of the excess over average for intervals in sustained elevated runs."""
    values = [r.consumption_kwh for r in readings]
    avg = average_consumption(values)
    if avg <= 0:
        return 0.0

    total = 0.0
    for i, value in enumerate(values):
        if not HVAC_LOW_MULTIPLIER * avg <= value <= HVAC_HIGH_MULTIPLIER * avg:
            continue

        run = 1
        for j in range(i + 1, min(i + 1 + HVAC_LOOKAHEAD, len(values))):
            if values[j] < HVAC_CONTINUATION_MULTIPLIER * avg:
                break
            run += 1

        if run >= HVAC_MIN_RUN:
            total += (value - avg) * HVAC_ATTRIBUTION

    return total


def _in_windows(hour: int, windows: list[tuple[int, int]]) -> bool:
    return any(start <= hour < end for start, end in windows)


def estimate_water_heater(readings: list[ConsumptionReading]) -> float:
    """Share of large morning and evening draws, capped per interval."""
    total = 0.0
    for reading in readings:
        if (
            _in_windows(reading.timestamp.hour, WATER_HEATER_WINDOWS)
            and reading.consumption_kwh > WATER_HEATER_THRESHOLD_KWH
        ):
            total += min(WATER_HEATER_CAP_KWH, reading.consumption_kwh * WATER_HEATER_SHARE)
    return total


def is_ev_window(ts: datetime) -> bool:
    """Overnight (22:00-06:00) or midday (11:00-14:00)."""
    return ts.hour >= 22 or ts.hour < 6 or 11 <= ts.hour < 14


def detect_ev_charging(readings: list[ConsumptionReading]) -> tuple[float, bool]:
    """Estimate EV charging kWh and whether any charging-like session was seen.

    A session is 4 to 12 consecutive intervals at >= 2x average inside an EV
    window. The scan resumes after each detected session.
    """
    values = [r.consumption_kwh for r in readings]
    avg = average_consumption(values)
    if avg <= 0:
        return 0.0, False

    threshold = EV_MULTIPLIER * avg
    total = 0.0
    detected = False
    i = 0
    while i < len(readings):
        if not (values[i] >= threshold and is_ev_window(readings[i].timestamp)):
            i += 1
            continue

        j = i
        while (
            j < len(readings)
            and j - i < EV_MAX_SESSION
            and values[j] >= threshold
            and is_ev_window(readings[j].timestamp)
        ):
            j += 1

        if j - i >= EV_MIN_SESSION:
            total += sum(values[i:j]) * EV_ATTRIBUTION
            detected = True
            i = j
        else:
            i += 1

    return total, detected


def _percent(part: float, total: float) -> float:
    return round(part / total * 100, 2) if total > 0 else 0.0


def disaggregate_readings(
    readings: list[ConsumptionReading], has_configured_ev: bool = False
) -> DisaggregationResult:
    """Split a consumption series into category estimates."""
    if not readings:
        return DisaggregationResult(has_configured_ev=has_configured_ev)

    readings = sorted(readings, key=lambda r: r.timestamp)
    total = sum(r.consumption_kwh for r in readings)

    baseload = estimate_baseload(readings)
    hvac = estimate_hvac(readings)
    water_heater = estimate_water_heater(readings)
    ev, ev_detected = detect_ev_charging(readings)

    accounted = baseload + hvac + water_heater + ev
    if accounted > total > 0:
        # Overlapping detectors claimed more than was used; scale them to fit
        scale = total / accounted
        baseload, hvac, water_heater, ev = (v * scale for v in (baseload, hvac, water_heater, ev))
        accounted = total

    discretionary = max(0.0, total - accounted)

    return DisaggregationResult(
        total_kwh=round(total, 3),
        hvac_kwh=round(hvac, 3),
        water_heater_kwh=round(water_heater, 3),
        ev_charging_kwh=round(ev, 3),
        baseload_kwh=round(baseload, 3),
        discretionary_kwh=round(discretionary, 3),
        hvac_percentage=_percent(hvac, total),
        water_heater_percentage=_percent(water_heater, total),
        ev_charging_percentage=_percent(ev, total),
        baseload_percentage=_percent(baseload, total),
        discretionary_percentage=_percent(discretionary, total),
        ev_pattern_detected=ev_detected,
        has_configured_ev=has_configured_ev,
    )


def disaggregate_consumption(
    user_id: str, start: datetime, end: datetime, db_path: Path | None = None
) -> DisaggregationResult:
    """Disaggregate a user's stored consumption between start and end."""
    readings = get_consumption_for_range(user_id, start, end, db_path)
    has_ev = len(get_electric_vehicles(user_id, db_path)) > 0
    return disaggregate_readings(readings, has_configured_ev=has_ev)
