"""Daily assistant: chart intervals with shading and a current-status prompt."""

from datetime import date, datetime, timedelta
from pathlib import Path

from ..consumption import get_consumption_for_range
from ..events import get_events_for_date
from ..intervals import SLOTS_PER_DAY, as_date, slot_index, slot_windows
from ..models import EnergyEvent
from .advice import DaySlot, load_day_slots

DEFAULT_DAILY_KWH = 20.0
AVERAGE_WINDOW_DAYS = 7
LOOKAHEAD_SLOTS = 6
HIGH_PRICE = 0.20
PEAK_PRICE = 0.25


def calculate_average_daily_consumption(
    user_id: str, db_path: Path | None = None, now: datetime | None = None
) -> float:
    """Average kWh/day over the last week, or 20 kWh with no data."""
    end = now or datetime.now()
    readings = get_consumption_for_range(user_id, end - timedelta(days=AVERAGE_WINDOW_DAYS), end, db_path)
    if not readings:
        return DEFAULT_DAILY_KWH

    total = sum(r.consumption_kwh for r in readings)
    days = max(1.0, len(readings) / SLOTS_PER_DAY)
    return total / days


def determine_base_shading(slot: DaySlot, average_daily_kwh: float) -> str:
    """Green for cheap or solar-covered slots, yellow for expensive ones."""
    consumption = slot.consumption_kwh

    if (
        slot.period_name == "off-peak"
        and consumption is not None
        and consumption < average_daily_kwh * 0.5 / SLOTS_PER_DAY
    ):
        return "green"
    if consumption is not None and slot.solar_kwh > consumption + 1:
        return "green"
    if slot.period_name == "peak":
        return "yellow"
    if slot.solar_kwh < 0.5 and slot.price_per_kwh > HIGH_PRICE:
        return "yellow"
    return "none"


def _overlaps_event(start: datetime, end: datetime, events: list[EnergyEvent]) -> bool:
    return any(e.start_time < end and e.end_time > start for e in events)


def build_chart_intervals(
    day: date, slots: list[DaySlot], events: list[EnergyEvent], average_daily_kwh: float
) -> list[dict]:
    """Chart rows for the day; any slot overlapping an event is shaded red."""
    intervals = []
    for slot, (start, end) in zip(slots, slot_windows(day)):
        base = determine_base_shading(slot, average_daily_kwh)
        intervals.append({
            "start_time": slot.start_time,
            "end_time": slot.end_time,
            "solar_generation_kwh": slot.solar_kwh,
            "consumption_kwh": slot.consumption_kwh,
            "price_per_kwh": slot.price_per_kwh,
            "period_name": slot.period_name,
            "shading": "red" if _overlaps_event(start, end, events) else base,
            "base_shading": base,
        })
    return intervals


def _hours(slot_count: int) -> str:
    hours = round(slot_count / 2, 1)
    return f"{hours:g} hour{'s' if hours != 1 else ''}"


def _first_index(rows: list[dict], predicate) -> int:
    return next((i for i, row in enumerate(rows) if predicate(row)), -1)


def calculate_current_status(
    intervals: list[dict], now: datetime, average_daily_kwh: float
) -> dict:
    """Solar and consumption state for the current slot plus a 3-hour outlook."""
    index = slot_index(now)
    current = intervals[index]
    future = intervals[index:min(index + LOOKAHEAD_SLOTS, SLOTS_PER_DAY - 1) + 1]

    max_solar = max(row["solar_generation_kwh"] for row in intervals)
    solar_now = current["solar_generation_kwh"]
    if max_solar == 0:
        solar_state = "low"
    elif solar_now > max_solar * 0.7:
        solar_state = "high"
    elif solar_now > max_solar * 0.3:
        solar_state = "medium"
    else:
        solar_state = "low"

    per_slot = average_daily_kwh / SLOTS_PER_DAY
    consumption_now = current["consumption_kwh"] or 0.0
    if consumption_now > per_slot * 1.5:
        consumption_state = "high"
    elif consumption_now > per_slot * 0.7:
        consumption_state = "medium"
    else:
        consumption_state = "low"

    price = current["price_per_kwh"]
    green = sum(1 for row in future if row["shading"] == "green")
    yellow = sum(1 for row in future if row["shading"] == "yellow")
    red = sum(1 for row in future if row["shading"] == "red")
    future_prices = [row["price_per_kwh"] for row in future]

    currently_good = current["shading"] == "green" or (solar_state == "high" and price < HIGH_PRICE)
    currently_bad = current["shading"] == "yellow" or price >= PEAK_PRICE
    future_bad = yellow > 2 or red > 0
    future_good = green > 2
    price_will_increase = max(future_prices) > price * 1.2
    price_will_decrease = min(future_prices) < price * 0.8

    def is_bad(row):
        return row["shading"] in ("yellow", "red")

    def is_green(row):
        return row["shading"] == "green"

    if currently_good and future_bad:
        # Count from the next slot; the current one may itself be shaded yellow
        until = _first_index(future[1:], is_bad) + 1 or 1
        if until / 2 <= 1.5:
            prompt = (
                f"Good time to use energy now, but prepare to reduce usage in {_hours(until)}. "
                "Peak rates approaching."
            )
        else:
            prompt = f"Good time to use energy for the next {_hours(until)}. Peak rates will follow."
    elif solar_state == "high" and consumption_state == "low":
        if all(row["solar_generation_kwh"] < solar_now * 0.7 for row in future[2:]):
            prompt = "Turn it up now! Solar generation is high but will decline soon. Use energy while it's free."
        else:
            prompt = "Turn it up! Solar generation is high and will remain strong for the next few hours."
    elif currently_bad and future_good:
        until = _first_index(future, is_green)
        prompt = f"Reduce usage now. Better rates in {_hours(until)}. Hold off on high-energy tasks."
    elif price_will_increase and not currently_bad:
        prompt = "Use energy now if needed. Prices will increase significantly in the next few hours."
    elif price >= PEAK_PRICE:
        if price_will_decrease:
            until = _first_index(future, lambda row: row["price_per_kwh"] < price * 0.8)
            prompt = f"Reduce usage. Peak rates active. Prices will drop in {_hours(until)}."
        else:
            prompt = "Reduce usage. Electricity prices are at peak rates for the next few hours."
    elif solar_state == "high":
        prompt = "Good time to use energy. Solar is generating well and conditions remain favorable."
    elif current["shading"] == "green":
        if future_bad:
            prompt = "Off-peak rates active now. Good time for high-energy tasks before rates increase."
        else:
            prompt = "Off-peak rates active. Good time for high-energy tasks for the next few hours."
    elif future_good:
        prompt = f"Normal conditions. Better rates coming in {_hours(_first_index(future, is_green))}."
    elif future_bad:
        prompt = f"Normal conditions. Peak rates approaching in {_hours(_first_index(future, is_bad))}."
    else:
        prompt = "Normal conditions. Steady rates expected for the next few hours."

    return {
        "solar_state": solar_state,
        "consumption_state": consumption_state,
        "current_price": price,
        "action_prompt": prompt,
    }


def generate_chart_data(
    user_id: str, day: date | datetime, db_path: Path | None = None, now: datetime | None = None
) -> dict:
    """Chart data for a day. Current status is only included for today."""
    now = now or datetime.now()
    target = as_date(day)

    slots = load_day_slots(user_id, target, db_path, today=now.date())
    events = get_events_for_date(user_id, target, db_path)
    average = calculate_average_daily_consumption(user_id, db_path, now)
    intervals = build_chart_intervals(target, slots, events, average)

    return {
        "date": target.isoformat(),
        "intervals": intervals,
        "current_status": calculate_current_status(intervals, now, average) if target == now.date() else None,
        "energy_events": [e.to_dict() for e in events],
    }
