"""Data models for household configuration, readings and derived advice."""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime

DAYS_OF_WEEK = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]
ORIENTATIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]
PRIORITIES = ("high", "medium", "low")


@dataclass
class TariffPeriod:
    """A named price rule active during specific times and days."""

    name: str
    start_time: str  # HH:MM format
    end_time: str  # HH:MM format
    price_per_kwh: float
    days_of_week: list[str] = field(default_factory=lambda: list(DAYS_OF_WEEK))


@dataclass
class TariffStructure:
    """A user's tariff. Periods are ordered: the first match wins."""

    user_id: str
    effective_date: datetime
    periods: list[TariffPeriod]


@dataclass
class TariffInterval:
    """One priced half-hour slot."""

    start_time: str
    end_time: str
    price_per_kwh: float
    period_name: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SolarSystemConfig:
    """Rooftop solar configuration."""

    has_solar: bool
    system_size_kw: float | None = None
    tilt_degrees: float | None = None
    orientation: str | None = None

    @property
    def is_complete(self) -> bool:
        return (
            self.has_solar
            and self.system_size_kw is not None
            and self.tilt_degrees is not None
            and bool(self.orientation)
        )


@dataclass
class SolarInterval:
    """Estimated generation for one half-hour slot."""

    start_time: datetime
    end_time: datetime
    generation_kwh: float


@dataclass
class SolarForecast:
    """48 slots of estimated generation for a day."""

    date: date
    intervals: list[SolarInterval]

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "intervals": [
                {
                    "start_time": i.start_time.isoformat(),
                    "end_time": i.end_time.isoformat(),
                    "generation_kwh": round(i.generation_kwh, 4),
                }
                for i in self.intervals
            ],
        }


@dataclass
class ConsumptionReading:
    """A half-hourly consumption reading."""

    timestamp: datetime
    consumption_kwh: float


@dataclass
class ConsumptionSlot:
    """A grid slot that may have no data."""

    timestamp: datetime
    consumption_kwh: float | None


@dataclass
class ElectricVehicle:
    """A configured electric vehicle."""

    user_id: str
    make: str
    model: str
    battery_capacity_kwh: float
    average_daily_miles: float
    charging_speed_kw: float = 7.0
    id: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class HomeBattery:
    """A configured home battery."""

    user_id: str
    power_kw: float
    capacity_kwh: float
    id: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class EnergyEvent:
    """A demand-response event offered by the grid operator."""

    event_type: str  # INCREASE_CONSUMPTION or DECREASE_CONSUMPTION
    start_time: datetime
    end_time: datetime
    incentive_description: str
    incentive_amount: float
    target_user_ids: str = "ALL"
    id: int | None = None

    def targets(self, user_id: str) -> bool:
        if self.target_user_ids == "ALL":
            return True
        return user_id in [t.strip() for t in self.target_user_ids.split(",")]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "incentive_description": self.incentive_description,
            "incentive_amount": self.incentive_amount,
        }


@dataclass
class AdviceItem:
    """A single recommendation."""

    title: str
    description: str
    recommended_time_start: str  # HH:MM format
    recommended_time_end: str  # HH:MM format
    estimated_savings: float
    priority: str = "medium"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AdviceResponse:
    """Ranked advice lists, each capped at three items."""

    general_advice: list[AdviceItem] = field(default_factory=list)
    ev_advice: list[AdviceItem] = field(default_factory=list)
    battery_advice: list[AdviceItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "general_advice": [a.to_dict() for a in self.general_advice],
            "ev_advice": [a.to_dict() for a in self.ev_advice],
            "battery_advice": [a.to_dict() for a in self.battery_advice],
        }


@dataclass
class DisaggregationResult:
    """Estimated consumption by device category over a date range."""

    total_kwh: float = 0.0
    hvac_kwh: float = 0.0
    water_heater_kwh: float = 0.0
    ev_charging_kwh: float = 0.0
    baseload_kwh: float = 0.0
    discretionary_kwh: float = 0.0
    hvac_percentage: float = 0.0
    water_heater_percentage: float = 0.0
    ev_charging_percentage: float = 0.0
    baseload_percentage: float = 0.0
    discretionary_percentage: float = 0.0
    ev_pattern_detected: bool = False
    has_configured_ev: bool = False
    note: str = (
        "Category figures are heuristic estimates from the aggregate meter "
        "series, not sub-metered measurements."
    )

    def to_dict(self) -> dict:
        return asdict(self)
