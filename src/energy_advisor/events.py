"""Demand-response energy events."""

import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path

from .db import get_connection
from .intervals import as_date
from .models import EnergyEvent

logger = logging.getLogger(__name__)

INCREASE_CONSUMPTION = "INCREASE_CONSUMPTION"
DECREASE_CONSUMPTION = "DECREASE_CONSUMPTION"
EVENT_TYPES = (INCREASE_CONSUMPTION, DECREASE_CONSUMPTION)


def _row_to_event(row) -> EnergyEvent:
    return EnergyEvent(
        id=row["id"],
        event_type=row["event_type"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]),
        incentive_description=row["incentive_description"],
        incentive_amount=row["incentive_amount"],
        target_user_ids=row["target_user_ids"],
    )


def save_event(event: EnergyEvent, db_path: Path | None = None) -> EnergyEvent:
    if event.event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event.event_type}")
    if event.end_time <= event.start_time:
        raise ValueError("Event must end after it starts")

    with get_connection(db_path) as conn:
        cursor = conn.execute(
            """INSERT INTO energy_events
               (event_type, start_time, end_time, incentive_description, incentive_amount, target_user_ids)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                event.event_type,
                event.start_time.isoformat(),
                event.end_time.isoformat(),
                event.incentive_description,
                event.incentive_amount,
                event.target_user_ids,
            ),
        )
        conn.commit()
        event.id = cursor.lastrowid
    return event


def get_events_for_date(user_id: str, day: date | datetime, db_path: Path | None = None) -> list[EnergyEvent]:
    """Events overlapping the day that target the user (or everyone)."""
    target = as_date(day)
    start_of_day = datetime.combine(target, time.min)
    end_of_day = datetime.combine(target, time.max)

    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT * FROM energy_events
               WHERE start_time <= ? AND end_time >= ?
               ORDER BY start_time""",
            (end_of_day.isoformat(), start_of_day.isoformat()),
        ).fetchall()

    return [e for e in map(_row_to_event, rows) if e.targets(user_id)]


def list_events(db_path: Path | None = None) -> list[EnergyEvent]:
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT * FROM energy_events ORDER BY start_time").fetchall()
    return [_row_to_event(row) for row in rows]


def seed_events(days: int = 30, db_path: Path | None = None, today: date | None = None) -> int:
    """Replace all events with a sample schedule every other day.

    Alternates a midday solar-surplus event (increase, 11:00-13:00) with an
    evening peak-reduction event (decrease, 21:00-22:00).
    """
    start = datetime.combine(today or date.today(), time.min)

    with get_connection(db_path) as conn:
        conn.execute("DELETE FROM energy_events")
        conn.commit()

    count = 0
    for offset in range(0, days, 2):
        event_day = start + timedelta(days=offset)
        if (offset // 2) % 2 == 0:
            event = EnergyEvent(
                event_type=INCREASE_CONSUMPTION,
                start_time=event_day + timedelta(hours=11),
                end_time=event_day + timedelta(hours=13),
                incentive_description="Solar Surplus Event - Use excess renewable energy",
                incentive_amount=3.00,
            )
        else:
            event = EnergyEvent(
                event_type=DECREASE_CONSUMPTION,
                start_time=event_day + timedelta(hours=21),
                end_time=event_day + timedelta(hours=22),
                incentive_description="Evening Peak Reduction - Reduce consumption during high demand",
                incentive_amount=4.50,
            )
        save_event(event, db_path)
        count += 1

    logger.info("Seeded %d energy events", count)
    return count
