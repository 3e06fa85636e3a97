"""Electric vehicle and home battery configuration."""

import logging
from pathlib import Path

from .db import get_connection
from .models import ElectricVehicle, HomeBattery

logger = logging.getLogger(__name__)

DEFAULT_CHARGING_SPEED_KW = 7.0
MAX_EV_CAPACITY_KWH = 200

# Approximate usable battery capacity (kWh) for common EVs
EV_BATTERY_CAPACITIES = [
    ("Tesla", "Model 3 Standard Range", 54),
    ("Tesla", "Model 3 Long Range", 75),
    ("Tesla", "Model 3 Performance", 75),
    ("Tesla", "Model Y Standard Range", 54),
    ("Tesla", "Model Y Long Range", 75),
    ("Tesla", "Model Y Performance", 75),
    ("Tesla", "Model S", 95),
    ("Tesla", "Model X", 95),
    ("Chevrolet", "Bolt EV", 60),
    ("Chevrolet", "Bolt EUV", 60),
    ("Nissan", "Leaf", 40),
    ("Nissan", "Leaf Plus", 60),
    ("Nissan", "Ariya", 63),
    ("Ford", "Mustang Mach-E Standard Range", 68),
    ("Ford", "Mustang Mach-E Extended Range", 88),
    ("Ford", "F-150 Lightning Standard Range", 98),
    ("Ford", "F-150 Lightning Extended Range", 131),
    ("Volkswagen", "ID.4", 77),
    ("Volkswagen", "ID.4 Pro", 77),
    ("Hyundai", "Ioniq 5 Standard Range", 58),
    ("Hyundai", "Ioniq 5 Long Range", 77),
    ("Hyundai", "Kona Electric", 64),
    ("Kia", "EV6 Standard Range", 58),
    ("Kia", "EV6 Long Range", 77),
    ("Kia", "Niro EV", 64),
    ("BMW", "i3", 37),
    ("BMW", "i4 eDrive40", 80),
    ("BMW", "iX xDrive50", 105),
    ("Audi", "e-tron", 86),
    ("Audi", "e-tron GT", 84),
    ("Audi", "Q4 e-tron", 77),
    ("Mercedes-Benz", "EQS", 107),
    ("Mercedes-Benz", "EQE", 90),
    ("Rivian", "R1T", 135),
    ("Rivian", "R1S", 135),
    ("Polestar", "Polestar 2 Standard Range", 64),
    ("Polestar", "Polestar 2 Long Range", 78),
]


def infer_battery_capacity(make: str, model: str) -> float | None:
    """Look up usable capacity by make and model.

    Tries an exact match, then a model-contains match, then a match on the
    first word of a known model for the same make.
    """
    make_lower = make.lower().strip()
    model_lower = model.lower().strip()
    same_make = [(m, cap) for mk, m, cap in EV_BATTERY_CAPACITIES if mk.lower() == make_lower]

    for known_model, capacity in same_make:
        if known_model.lower() == model_lower:
            return capacity

    for known_model, capacity in same_make:
        if model_lower and model_lower in known_model.lower():
            return capacity

    for known_model, capacity in same_make:
        if known_model.lower().split(" ")[0] in model_lower:
            return capacity

    return None


def get_default_battery_capacity(model: str) -> float:
    """A reasonable capacity guess by vehicle class."""
    model_lower = model.lower()
    if any(k in model_lower for k in ("truck", "f-150", "r1t", "r1s")):
        return 100
    if any(k in model_lower for k in ("model s", "model x", "eqs", "ix")):
        return 90
    return 65


def get_available_makes() -> list[str]:
    return sorted({make for make, _, _ in EV_BATTERY_CAPACITIES})


def get_available_models(make: str) -> list[str]:
    make_lower = make.lower().strip()
    return sorted(m for mk, m, _ in EV_BATTERY_CAPACITIES if mk.lower() == make_lower)


def add_electric_vehicle(
    user_id: str,
    make: str,
    model: str,
    average_daily_miles: float,
    charging_speed_kw: float | None = None,
    battery_capacity_kwh: float | None = None,
    db_path: Path | None = None,
) -> ElectricVehicle:
    """Add an EV, inferring battery capacity when not given."""
    if not make or not model:
        raise ValueError("Make and model are required")
    if average_daily_miles < 0:
        raise ValueError("Average daily miles cannot be negative")

    capacity = battery_capacity_kwh
    if capacity is None:
        capacity = infer_battery_capacity(make, model)
        if capacity is None:
            capacity = get_default_battery_capacity(model)
            logger.info("No capacity match for %s %s, assuming %s kWh", make, model, capacity)
    if not 0 < capacity <= MAX_EV_CAPACITY_KWH:
        raise ValueError(f"Battery capacity must be between 0 and {MAX_EV_CAPACITY_KWH} kWh")

    speed = DEFAULT_CHARGING_SPEED_KW if charging_speed_kw is None else charging_speed_kw
    if speed <= 0:
        raise ValueError("Charging speed must be positive")

    ev = ElectricVehicle(
        user_id=user_id,
        make=make,
        model=model,
        battery_capacity_kwh=float(capacity),
        average_daily_miles=float(average_daily_miles),
        charging_speed_kw=float(speed),
    )
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            """INSERT INTO electric_vehicles
               (user_id, make, model, battery_capacity_kwh, charging_speed_kw, average_daily_miles)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, ev.make, ev.model, ev.battery_capacity_kwh, ev.charging_speed_kw, ev.average_daily_miles),
        )
        conn.commit()
        ev.id = cursor.lastrowid
    return ev


def get_electric_vehicles(user_id: str, db_path: Path | None = None) -> list[ElectricVehicle]:
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT id, user_id, make, model, battery_capacity_kwh, charging_speed_kw, average_daily_miles
               FROM electric_vehicles WHERE user_id = ? ORDER BY id""",
            (user_id,),
        ).fetchall()

        return [
            ElectricVehicle(
                id=row["id"],
                user_id=row["user_id"],
                make=row["make"],
                model=row["model"],
                battery_capacity_kwh=row["battery_capacity_kwh"],
                charging_speed_kw=row["charging_speed_kw"],
                average_daily_miles=row["average_daily_miles"],
            )
            for row in rows
        ]


def remove_electric_vehicle(user_id: str, vehicle_id: int, db_path: Path | None = None) -> bool:
    """Delete a user's EV. Returns False if it does not exist."""
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "DELETE FROM electric_vehicles WHERE id = ? AND user_id = ?", (vehicle_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0


def add_home_battery(
    user_id: str, power_kw: float, capacity_kwh: float, db_path: Path | None = None
) -> HomeBattery:
    if power_kw <= 0 or capacity_kwh <= 0:
        raise ValueError("Battery power and capacity must be positive")

    battery = HomeBattery(user_id=user_id, power_kw=float(power_kw), capacity_kwh=float(capacity_kwh))
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "INSERT INTO home_batteries (user_id, power_kw, capacity_kwh) VALUES (?, ?, ?)",
            (user_id, battery.power_kw, battery.capacity_kwh),
        )
        conn.commit()
        battery.id = cursor.lastrowid
    return battery


def get_home_batteries(user_id: str, db_path: Path | None = None) -> list[HomeBattery]:
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT id, user_id, power_kw, capacity_kwh FROM home_batteries WHERE user_id = ? ORDER BY id",
            (user_id,),
        ).fetchall()
        return [
            HomeBattery(
                id=row["id"],
                user_id=row["user_id"],
                power_kw=row["power_kw"],
                capacity_kwh=row["capacity_kwh"],
            )
            for row in rows
        ]


def remove_home_battery(user_id: str, battery_id: int, db_path: Path | None = None) -> bool:
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "DELETE FROM home_batteries WHERE id = ? AND user_id = ?", (battery_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0
