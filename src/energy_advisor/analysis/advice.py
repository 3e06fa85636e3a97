"""Ranked energy advice from tariff, solar, consumption and assets.

General, EV and battery advice are separate lists. Each is sorted by
priority (high > medium > low) and then by estimated savings, and only then
cut to three items.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path

from ..assets import get_electric_vehicles, get_home_batteries
from ..consumption import get_consumption_with_gaps
from ..events import DECREASE_CONSUMPTION, INCREASE_CONSUMPTION, get_events_for_date
from ..intervals import SLOT_HOURS, SLOTS_PER_DAY, as_date, format_time, slot_label
from ..models import (
    AdviceItem,
    AdviceResponse,
    ConsumptionSlot,
    ElectricVehicle,
    EnergyEvent,
    HomeBattery,
    SolarForecast,
    TariffInterval,
)
from ..solar import calculate_total_generation, generate_solar_forecast, get_solar_config
from ..tariffs import get_active_tariff_structure, map_tariff_to_intervals

logger = logging.getLogger(__name__)

MAX_ADVICE_ITEMS = 3
PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}

SOLAR_SURPLUS_KWH = 1.0  # per half-hour slot
TYPICAL_TASK_KWH = 1.5  # dishwasher / laundry cycle
EXPORT_VALUE_FRACTION = 0.5
MILES_PER_KWH = 3.5
EV_ARRIVAL_SLOT = 36  # 18:00, when a car is typically plugged in
BATTERY_ROUND_TRIP_EFFICIENCY = 0.9
MAX_BATTERY_WINDOW_SLOTS = SLOTS_PER_DAY // 2
HIGH_SOLAR_DAY_KWH = 20.0
MIDDAY_SLOTS = range(20, 32)  # 10:00-16:00
PRE_PEAK_SLOTS = 4


@dataclass
class DaySlot:
    """Tariff, solar and consumption for one slot, zipped by index."""

    index: int
    start_time: str
    end_time: str
    solar_kwh: float
    consumption_kwh: float | None
    price_per_kwh: float
    period_name: str

    @property
    def surplus_kwh(self) -> float:
        return self.solar_kwh - (self.consumption_kwh or 0.0)


def build_day_slots(
    tariff_intervals: list[TariffInterval],
    forecast: SolarForecast,
    consumption: list[ConsumptionSlot],
) -> list[DaySlot]:
    """Zip the three 48-slot series positionally."""
    slots = []
    for i in range(SLOTS_PER_DAY):
        start_time, end_time = slot_label(i)
        slots.append(
            DaySlot(
                index=i,
                start_time=start_time,
                end_time=end_time,
                solar_kwh=forecast.intervals[i].generation_kwh,
                consumption_kwh=consumption[i].consumption_kwh,
                price_per_kwh=tariff_intervals[i].price_per_kwh,
                period_name=tariff_intervals[i].period_name,
            )
        )
    return slots


def load_day_slots(
    user_id: str, day: date | datetime, db_path: Path | None = None, today: date | None = None
) -> list[DaySlot]:
    """Load and zip a user's tariff, solar forecast and consumption for a day."""
    target = as_date(day)
    tariff = get_active_tariff_structure(user_id, db_path)
    forecast = generate_solar_forecast(get_solar_config(user_id, db_path), target)
    consumption = get_consumption_with_gaps(user_id, target, db_path, today)
    return build_day_slots(map_tariff_to_intervals(tariff, target), forecast, consumption)


# Ranking and windows


def rank_advice(items: list[AdviceItem], limit: int = MAX_ADVICE_ITEMS) -> list[AdviceItem]:
    """Sort by priority then savings (descending) and keep the top ``limit``."""
    ranked = sorted(items, key=lambda a: (PRIORITY_RANK[a.priority], -a.estimated_savings))
    return ranked[:limit]


def _savings(value: float) -> float:
    return round(max(0.0, value), 2)


def _window_indices(start: int, length: int) -> list[int]:
    return [(start + k) % SLOTS_PER_DAY for k in range(length)]


def _window_label(slots: list[DaySlot], start: int, length: int) -> tuple[str, str]:
    indices = _window_indices(start, length)
    return slots[indices[0]].start_time, slots[indices[-1]].end_time


def window_mean_price(slots: list[DaySlot], start: int, length: int) -> float:
    return sum(slots[i].price_per_kwh for i in _window_indices(start, length)) / length


def find_cheapest_window(slots: list[DaySlot], length: int, wrap: bool = True) -> int | None:
    """Start index of the cheapest contiguous window (earliest on ties)."""
    if length <= 0 or length > len(slots):
        return None
    last_start = len(slots) if wrap else len(slots) - length + 1
    best, best_price = None, math.inf
    for start in range(last_start):
        price = window_mean_price(slots, start, length)
        if price < best_price - 1e-9:
            best, best_price = start, price
    return best


def find_dearest_window(
    slots: list[DaySlot], length: int, candidates: list[int]
) -> int | None:
    """Start index of the most expensive window among candidate starts."""
    best, best_price = None, -math.inf
    for start in candidates:
        price = window_mean_price(slots, start, length)
        if price > best_price + 1e-9:
            best, best_price = start, price
    return best


def _contiguous_runs(indices: list[int]) -> list[list[int]]:
    runs: list[list[int]] = []
    for i in indices:
        if runs and runs[-1][-1] == i - 1:
            runs[-1].append(i)
        else:
            runs.append([i])
    return runs


def _price_spread(slots: list[DaySlot]) -> tuple[float, float, float]:
    prices = [s.price_per_kwh for s in slots]
    return min(prices), max(prices), sum(prices) / len(prices)


# General advice


def event_advice(events: list[EnergyEvent]) -> list[AdviceItem]:
    advice = []
    for event in events:
        start = format_time(event.start_time.hour, event.start_time.minute)
        end = format_time(event.end_time.hour, event.end_time.minute)
        if event.event_type == INCREASE_CONSUMPTION:
            advice.append(
                AdviceItem(
                    title="Energy event: increase usage",
                    description=(
                        f"{event.incentive_description}. Run high-energy appliances like the "
                        "dishwasher, washing machine or dryer during this window to earn rewards."
                    ),
                    recommended_time_start=start,
                    recommended_time_end=end,
                    estimated_savings=_savings(event.incentive_amount),
                    priority="high",
                )
            )
        elif event.event_type == DECREASE_CONSUMPTION:
            advice.append(
                AdviceItem(
                    title="Energy event: reduce usage",
                    description=(
                        f"{event.incentive_description}. Avoid running high-energy appliances "
                        "during this period to earn rewards and help grid stability."
                    ),
                    recommended_time_start=start,
                    recommended_time_end=end,
                    estimated_savings=_savings(event.incentive_amount),
                    priority="high",
                )
            )
    return advice


def solar_surplus_advice(slots: list[DaySlot]) -> list[AdviceItem]:
    """Use-now advice for the largest run of solar surplus at non-peak prices."""
    _, max_price, mean_price = _price_spread(slots)
    flat = all(s.price_per_kwh == max_price for s in slots)
    candidates = [
        s.index
        for s in slots
        if s.surplus_kwh > SOLAR_SURPLUS_KWH and (flat or s.price_per_kwh < max_price)
    ]
    if not candidates:
        return []

    best = max(_contiguous_runs(candidates), key=lambda run: sum(slots[i].surplus_kwh for i in run))
    surplus = sum(slots[i].surplus_kwh for i in best)
    start, end = slots[best[0]].start_time, slots[best[-1]].end_time

    return [
        AdviceItem(
            title="Use high-energy appliances during solar peak",
            description=(
                f"Run your dryer or air conditioning between {start} and {end} to use "
                f"about {surplus:.1f} kWh of excess solar instead of exporting it."
            ),
            recommended_time_start=start,
            recommended_time_end=end,
            estimated_savings=_savings(surplus * mean_price * EXPORT_VALUE_FRACTION),
            priority="high",
        )
    ]


def load_shifting_advice(slots: list[DaySlot]) -> list[AdviceItem]:
    """Shift usage out of windows where both price and consumption are high."""
    known = [s.consumption_kwh for s in slots if s.consumption_kwh is not None]
    if not known:
        return []

    min_price, max_price, mean_price = _price_spread(slots)
    if max_price <= min_price:
        return []
    mean_consumption = sum(known) / len(known)

    hot = [
        s.index
        for s in slots
        if s.price_per_kwh > mean_price
        and s.consumption_kwh is not None
        and s.consumption_kwh > mean_consumption
    ]
    if not hot:
        return []

    def window_cost(run: list[int]) -> float:
        return sum((slots[i].consumption_kwh - mean_consumption) * slots[i].price_per_kwh for i in run)

    run = max(_contiguous_runs(hot), key=window_cost)
    shiftable_kwh = sum(slots[i].consumption_kwh - mean_consumption for i in run)
    run_price = sum(slots[i].price_per_kwh for i in run) / len(run)

    target = find_cheapest_window(slots, len(run))
    target_start, target_end = _window_label(slots, target, len(run))
    target_price = window_mean_price(slots, target, len(run))

    return [
        AdviceItem(
            title="Shift heavy usage out of expensive hours",
            description=(
                f"Your usage between {slots[run[0]].start_time} and {slots[run[-1]].end_time} is "
                f"above average while prices are high. Moving about {shiftable_kwh:.1f} kWh to "
                f"{target_start}-{target_end} would lower your bill."
            ),
            recommended_time_start=target_start,
            recommended_time_end=target_end,
            estimated_savings=_savings(shiftable_kwh * (run_price - target_price)),
            priority="high",
        )
    ]


def peak_avoidance_advice(slots: list[DaySlot]) -> list[AdviceItem]:
    """Warn about the most expensive period of the day."""
    min_price, max_price, _ = _price_spread(slots)
    if max_price <= min_price:
        return []

    peak = [s.index for s in slots if s.price_per_kwh == max_price]
    run = max(_contiguous_runs(peak), key=len)

    # cheaper stretch following the peak, wrapping past midnight
    after = slots[(run[-1] + 1) % SLOTS_PER_DAY]
    last = after
    for k in range(2, SLOTS_PER_DAY - len(run) + 1):
        nxt = slots[(run[-1] + k) % SLOTS_PER_DAY]
        if nxt.price_per_kwh >= max_price:
            break
        last = nxt

    return [
        AdviceItem(
            title="Avoid high-energy tasks during peak hours",
            description=(
                f"Peak pricing is active from {slots[run[0]].start_time} to {slots[run[-1]].end_time}. "
                "Delay the dishwasher, laundry and EV charging until after peak hours."
            ),
            recommended_time_start=after.start_time,
            recommended_time_end=last.end_time,
            estimated_savings=_savings(TYPICAL_TASK_KWH * (max_price - min_price)),
            priority="high",
        )
    ]


def off_peak_advice(slots: list[DaySlot]) -> list[AdviceItem]:
    """Schedule flexible loads in the longest cheapest-rate window."""
    min_price, max_price, mean_price = _price_spread(slots)
    if max_price <= min_price:
        return []

    cheapest = [s.index for s in slots if s.price_per_kwh == min_price]
    run = max(_contiguous_runs(cheapest), key=len)
    start, end = slots[run[0]].start_time, slots[run[-1]].end_time

    return [
        AdviceItem(
            title="Schedule flexible tasks for the lowest rates",
            description=(
                f"Set your dishwasher and washing machine to run between {start} and {end} "
                "for the cheapest electricity."
            ),
            recommended_time_start=start,
            recommended_time_end=end,
            estimated_savings=_savings(TYPICAL_TASK_KWH * (mean_price - min_price)),
            priority="medium",
        )
    ]


def general_advice(slots: list[DaySlot], events: list[EnergyEvent]) -> list[AdviceItem]:
    items = []
    items.extend(event_advice(events))
    items.extend(solar_surplus_advice(slots))
    items.extend(load_shifting_advice(slots))
    items.extend(peak_avoidance_advice(slots))
    items.extend(off_peak_advice(slots))
    return rank_advice(items)


# EV advice


def ev_energy_needed(ev: ElectricVehicle) -> float:
    """Daily kWh to replace the average miles driven, capped at battery size."""
    return min(ev.average_daily_miles / MILES_PER_KWH, ev.battery_capacity_kwh)


def ev_slots_needed(ev: ElectricVehicle) -> int:
    energy = ev_energy_needed(ev)
    if energy <= 0:
        return 0
    return min(SLOTS_PER_DAY, math.ceil(energy / ev.charging_speed_kw / SLOT_HOURS))


def ev_cheapest_window_advice(ev: ElectricVehicle, slots: list[DaySlot]) -> AdviceItem | None:
    """Move charging from plug-in time to the cheapest window long enough to finish."""
    needed = ev_slots_needed(ev)
    if needed == 0:
        return None

    energy = ev_energy_needed(ev)
    best = find_cheapest_window(slots, needed)
    naive_price = window_mean_price(slots, EV_ARRIVAL_SLOT, needed)
    best_price = window_mean_price(slots, best, needed)
    savings = _savings(energy * (naive_price - best_price))
    start, end = _window_label(slots, best, needed)
    hours = round(needed * SLOT_HOURS, 1)

    return AdviceItem(
        title=f"Charge {ev.make} {ev.model} between {start} and {end}",
        description=(
            f"This is the cheapest {hours}-hour window to add {energy:.1f} kWh "
            f"({ev.average_daily_miles:g} miles) at {ev.charging_speed_kw:g} kW, "
            "compared with charging as soon as you plug in at 18:00."
        ),
        recommended_time_start=start,
        recommended_time_end=end,
        estimated_savings=savings,
        priority="high" if savings > 0 else "low",
    )


def ev_solar_charging_advice(ev: ElectricVehicle, slots: list[DaySlot]) -> AdviceItem | None:
    """Charge from midday solar surplus when enough of it is contiguous."""
    needed = ev_slots_needed(ev)
    if needed == 0:
        return None

    surplus = [i for i in MIDDAY_SLOTS if slots[i].surplus_kwh > SOLAR_SURPLUS_KWH]
    runs = [run for run in _contiguous_runs(surplus) if len(run) >= needed]
    if not runs:
        return None

    run = max(runs, key=lambda r: sum(slots[i].surplus_kwh for i in r))
    window = run[:needed]
    solar_kwh = min(ev_energy_needed(ev), sum(slots[i].surplus_kwh for i in window))
    grid_price = sum(slots[i].price_per_kwh for i in window) / len(window)
    start, end = slots[window[0]].start_time, slots[window[-1]].end_time

    return AdviceItem(
        title=f"Charge {ev.make} {ev.model} with solar",
        description=(
            f"Charge between {start} and {end} to soak up about {solar_kwh:.1f} kWh "
            "of excess solar generation."
        ),
        recommended_time_start=start,
        recommended_time_end=end,
        estimated_savings=_savings(solar_kwh * grid_price),
        priority="high",
    )


def ev_advice(evs: list[ElectricVehicle], slots: list[DaySlot]) -> list[AdviceItem]:
    items = []
    for ev in evs:
        for item in (ev_cheapest_window_advice(ev, slots), ev_solar_charging_advice(ev, slots)):
            if item is not None:
                items.append(item)
    return rank_advice(items)


# Battery advice


def battery_window_slots(battery: HomeBattery) -> int:
    """Slots to fully charge at rated power, capped at half a day."""
    return max(1, min(MAX_BATTERY_WINDOW_SLOTS, math.ceil(battery.capacity_kwh / battery.power_kw / SLOT_HOURS)))


def battery_throughput(battery: HomeBattery, slots_count: int) -> float:
    return min(battery.capacity_kwh, battery.power_kw * slots_count * SLOT_HOURS)


def battery_arbitrage_advice(battery: HomeBattery, slots: list[DaySlot]) -> AdviceItem | None:
    """Charge in the cheapest window and discharge in the dearest one after it."""
    length = battery_window_slots(battery)
    charge = find_cheapest_window(slots, length, wrap=False)
    if charge is None:
        return None

    charge_indices = set(_window_indices(charge, length))
    after = list(range(charge + length, SLOTS_PER_DAY - length + 1))
    anywhere = [
        s for s in range(SLOTS_PER_DAY - length + 1)
        if not charge_indices.intersection(_window_indices(s, length))
    ]
    discharge = find_dearest_window(slots, length, after or anywhere)
    if discharge is None:
        return None

    charge_price = window_mean_price(slots, charge, length)
    discharge_price = window_mean_price(slots, discharge, length)
    if discharge_price <= charge_price:
        return None

    throughput = battery_throughput(battery, length)
    charge_start, charge_end = _window_label(slots, charge, length)
    discharge_start, discharge_end = _window_label(slots, discharge, length)

    return AdviceItem(
        title=f"Charge battery {charge_start}-{charge_end}, use it {discharge_start}-{discharge_end}",
        description=(
            f"Charge {throughput:.1f} kWh at {charge_price:.2f}/kWh and power the house from the "
            f"battery when prices reach {discharge_price:.2f}/kWh."
        ),
        recommended_time_start=charge_start,
        recommended_time_end=charge_end,
        estimated_savings=_savings(
            throughput * BATTERY_ROUND_TRIP_EFFICIENCY * (discharge_price - charge_price)
        ),
        priority="high",
    )


def battery_solar_reserve_advice(
    battery: HomeBattery, slots: list[DaySlot], tomorrow_solar_kwh: float
) -> AdviceItem | None:
    """Leave room for solar when tomorrow looks sunny."""
    if tomorrow_solar_kwh <= HIGH_SOLAR_DAY_KWH:
        return None

    solar = [i for i in MIDDAY_SLOTS if slots[i].surplus_kwh > 0]
    if not solar:
        return None

    _, max_price, mean_price = _price_spread(slots)
    stored = min(battery.capacity_kwh, sum(slots[i].surplus_kwh for i in solar))
    start, end = slots[solar[0]].start_time, slots[solar[-1]].end_time

    return AdviceItem(
        title="Reserve battery capacity for solar",
        description=(
            f"Tomorrow's forecast is {tomorrow_solar_kwh:.1f} kWh. Keep capacity free between "
            f"{start} and {end} to store excess solar for the evening."
        ),
        recommended_time_start=start,
        recommended_time_end=end,
        estimated_savings=_savings(stored * (max_price - mean_price * 0.1)),
        priority="high",
    )


def battery_pre_peak_advice(battery: HomeBattery, slots: list[DaySlot]) -> AdviceItem | None:
    """Top up in the cheaper slots just before the first peak slot."""
    _, max_price, _ = _price_spread(slots)
    first_peak = next(s.index for s in slots if s.price_per_kwh == max_price)
    if first_peak < 2:
        return None

    start = max(0, first_peak - PRE_PEAK_SLOTS)
    pre_price = window_mean_price(slots, start, first_peak - start)
    if pre_price >= max_price:
        return None

    return AdviceItem(
        title="Pre-charge battery before peak hours",
        description=(
            f"Top up from {slots[start].start_time} to {slots[first_peak - 1].end_time} so stored "
            f"energy is ready when peak pricing starts at {slots[first_peak].start_time}."
        ),
        recommended_time_start=slots[start].start_time,
        recommended_time_end=slots[first_peak - 1].end_time,
        estimated_savings=_savings(battery.capacity_kwh * 0.5 * (max_price - pre_price)),
        priority="medium",
    )


def battery_advice(
    batteries: list[HomeBattery], slots: list[DaySlot], tomorrow_solar_kwh: float = 0.0
) -> list[AdviceItem]:
    items = []
    for battery in batteries:
        for item in (
            battery_arbitrage_advice(battery, slots),
            battery_solar_reserve_advice(battery, slots, tomorrow_solar_kwh),
            battery_pre_peak_advice(battery, slots),
        ):
            if item is not None:
                items.append(item)
    return rank_advice(items)


def build_advice(
    slots: list[DaySlot],
    evs: list[ElectricVehicle] | None = None,
    batteries: list[HomeBattery] | None = None,
    events: list[EnergyEvent] | None = None,
    tomorrow_solar_kwh: float = 0.0,
) -> AdviceResponse:
    """Pure advice synthesis over a zipped day."""
    return AdviceResponse(
        general_advice=general_advice(slots, events or []),
        ev_advice=ev_advice(evs or [], slots),
        battery_advice=battery_advice(batteries or [], slots, tomorrow_solar_kwh),
    )


def generate_energy_advice(
    user_id: str, day: date | datetime, db_path: Path | None = None, today: date | None = None
) -> AdviceResponse:
    """Load a user's configuration and data for a day and build advice."""
    target = as_date(day)
    slots = load_day_slots(user_id, target, db_path, today)

    solar_config = get_solar_config(user_id, db_path)
    tomorrow = generate_solar_forecast(solar_config, target + timedelta(days=1))

    response = build_advice(
        slots,
        evs=get_electric_vehicles(user_id, db_path),
        batteries=get_home_batteries(user_id, db_path),
        events=get_events_for_date(user_id, target, db_path),
        tomorrow_solar_kwh=calculate_total_generation(tomorrow),
    )
    logger.debug(
        "Advice for %s on %s: %d general, %d EV, %d battery",
        user_id, target, len(response.general_advice), len(response.ev_advice), len(response.battery_advice),
    )
    return response
