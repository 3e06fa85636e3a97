"""Tariff storage, loading and mapping onto the half-hour grid."""

import logging
from datetime import date, datetime
from pathlib import Path

import yaml

from .db import get_connection
from .intervals import SLOTS_PER_DAY, day_of_week_token, slot_label
from .models import DAYS_OF_WEEK, TariffInterval, TariffPeriod, TariffStructure

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "tariffs.yaml"

UNKNOWN_PERIOD = "unknown"

DAY_ALIASES = {
    "*": DAYS_OF_WEEK,
    "all": DAYS_OF_WEEK,
    "weekdays": DAYS_OF_WEEK[:5],
    "weekends": DAYS_OF_WEEK[5:],
}


def parse_days(days) -> list[str]:
    """Normalise a days value ('*', 'weekdays', 'MON,TUE' or a list) to tokens."""
    if days is None:
        return list(DAYS_OF_WEEK)
    if isinstance(days, str):
        alias = DAY_ALIASES.get(days.strip().lower())
        if alias is not None:
            return list(alias)
        days = days.split(",")
    tokens = [str(d).strip().upper() for d in days if str(d).strip()]
    for token in tokens:
        if token not in DAYS_OF_WEEK:
            raise ValueError(f"Unknown day of week: {token}")
    return tokens


def _parse_effective_date(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if value:
        return datetime.fromisoformat(str(value))
    return datetime.now()


def load_tariff_from_yaml(user_id: str, config_path: Path | None = None) -> TariffStructure:
    """Load a tariff structure from a YAML config file."""
    path = config_path or DEFAULT_CONFIG_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    periods = [
        TariffPeriod(
            name=p["name"],
            start_time=str(p["start"]),
            end_time=str(p["end"]),
            price_per_kwh=float(p["price"]),
            days_of_week=parse_days(p.get("days", "*")),
        )
        for p in data.get("periods", [])
    ]
    return TariffStructure(
        user_id=user_id,
        effective_date=_parse_effective_date(data.get("effective_date")),
        periods=periods,
    )


def validate_tariff_structure(tariff: TariffStructure) -> None:
    """Raise ValueError if a tariff cannot be stored."""
    for period in tariff.periods:
        if not period.name:
            raise ValueError("Tariff period name is required")
        if period.price_per_kwh < 0:
            raise ValueError(f"Negative price for period {period.name}")
        time_to_minutes(period.start_time)
        time_to_minutes(period.end_time)
        parse_days(period.days_of_week)


def store_tariff_structure(tariff: TariffStructure, db_path: Path | None = None) -> int:
    """Replace the user's tariff structure. Returns the new structure id.

    Old structures and their periods are deleted and the new ones inserted
    in a single transaction.
    """
    validate_tariff_structure(tariff)

    with get_connection(db_path) as conn:
        with conn:
            conn.execute(
                """DELETE FROM tariff_periods WHERE structure_id IN
                   (SELECT id FROM tariff_structures WHERE user_id = ?)""",
                (tariff.user_id,),
            )
            conn.execute("DELETE FROM tariff_structures WHERE user_id = ?", (tariff.user_id,))

            cursor = conn.execute(
                "INSERT INTO tariff_structures (user_id, effective_date) VALUES (?, ?)",
                (tariff.user_id, tariff.effective_date.isoformat()),
            )
            structure_id = cursor.lastrowid

            for position, period in enumerate(tariff.periods):
                conn.execute(
                    """INSERT INTO tariff_periods
                       (structure_id, position, name, start_time, end_time, price_per_kwh, days_of_week)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        structure_id,
                        position,
                        period.name,
                        period.start_time,
                        period.end_time,
                        period.price_per_kwh,
                        ",".join(period.days_of_week),
                    ),
                )

    logger.info("Stored tariff for %s with %d periods", tariff.user_id, len(tariff.periods))
    return structure_id


def get_tariff_structure(user_id: str, db_path: Path | None = None) -> TariffStructure | None:
    """Get the user's current tariff structure, or None if none is stored."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT id, user_id, effective_date FROM tariff_structures
               WHERE user_id = ?
               ORDER BY effective_date DESC, id DESC LIMIT 1""",
            (user_id,),
        ).fetchone()

        if not row:
            return None

        periods = conn.execute(
            """SELECT name, start_time, end_time, price_per_kwh, days_of_week
               FROM tariff_periods WHERE structure_id = ? ORDER BY position""",
            (row["id"],),
        ).fetchall()

        return TariffStructure(
            user_id=row["user_id"],
            effective_date=datetime.fromisoformat(row["effective_date"]),
            periods=[
                TariffPeriod(
                    name=p["name"],
                    start_time=p["start_time"],
                    end_time=p["end_time"],
                    price_per_kwh=p["price_per_kwh"],
                    days_of_week=[d for d in p["days_of_week"].split(",") if d],
                )
                for p in periods
            ],
        )


def get_active_tariff_structure(user_id: str, db_path: Path | None = None) -> TariffStructure:
    """Get the user's tariff, falling back to the default structure."""
    tariff = get_tariff_structure(user_id, db_path)
    if tariff is None:
        logger.debug("No stored tariff for %s, using default", user_id)
        return get_default_tariff_structure(user_id)
    return tariff


def time_to_minutes(time_str: str) -> int:
    """Convert HH:MM to minutes since midnight. 24:00 is 1440."""
    parts = time_str.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time: {time_str!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours == 24 and minutes == 0:
        return 24 * 60
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time: {time_str!r}")
    return hours * 60 + minutes


def parse_time(time_str: str) -> tuple[int, int]:
    """Parse HH:MM into (hour, minute)."""
    minutes = time_to_minutes(time_str)
    return minutes // 60, minutes % 60


def time_in_range(check_time: str, start: str, end: str) -> bool:
    """Check if a time falls within [start, end), handling overnight ranges."""
    # 00:00 to 00:00 is a whole-day period
    if start == "00:00" and end == "00:00":
        return True

    check = time_to_minutes(check_time)
    start_minutes = time_to_minutes(start)
    end_minutes = time_to_minutes(end)

    if start_minutes <= end_minutes:
        return start_minutes <= check < end_minutes
    else:
        # Overnight range (e.g., 22:00 to 06:00)
        return check >= start_minutes or check < end_minutes


def find_matching_period(periods: list[TariffPeriod], time_str: str, day_token: str) -> TariffPeriod | None:
    """First period (in listed order) covering the time on the given day."""
    for period in periods:
        if day_token not in (period.days_of_week or ()):
            continue
        try:
            if time_in_range(time_str, period.start_time, period.end_time):
                return period
        except (ValueError, AttributeError):
            # An unparseable period never matches
            continue
    return None


def map_tariff_to_intervals(tariff: TariffStructure, day: date | datetime) -> list[TariffInterval]:
    """Map a tariff structure to the 48 half-hour slots of a day."""
    day_token = day_of_week_token(day)
    periods = tariff.periods or []

    intervals = []
    for i in range(SLOTS_PER_DAY):
        start_time, end_time = slot_label(i)
        period = find_matching_period(periods, start_time, day_token)
        intervals.append(
            TariffInterval(
                start_time=start_time,
                end_time=end_time,
                price_per_kwh=period.price_per_kwh if period else 0.0,
                period_name=period.name if period else UNKNOWN_PERIOD,
            )
        )
    return intervals


def get_price_for_time(tariff: TariffStructure, dt: datetime) -> float:
    """Price per kWh at a specific datetime (0 when no period matches)."""
    time_str = f"{dt.hour:02d}:{dt.minute:02d}"
    period = find_matching_period(tariff.periods or [], time_str, day_of_week_token(dt))
    return period.price_per_kwh if period else 0.0


def get_default_tariff_structure(user_id: str) -> TariffStructure:
    """Fallback tariff used when a user has no stored structure."""
    weekdays = DAYS_OF_WEEK[:5]
    weekends = DAYS_OF_WEEK[5:]
    return TariffStructure(
        user_id=user_id,
        effective_date=datetime.now(),
        periods=[
            TariffPeriod("off-peak", "00:00", "07:00", 0.07, list(DAYS_OF_WEEK)),
            TariffPeriod("shoulder", "07:00", "17:00", 0.15, list(weekdays)),
            TariffPeriod("shoulder", "07:00", "22:00", 0.15, list(weekends)),
            TariffPeriod("peak", "17:00", "22:00", 0.30, list(weekdays)),
            TariffPeriod("off-peak", "22:00", "24:00", 0.07, list(DAYS_OF_WEEK)),
        ],
    )
