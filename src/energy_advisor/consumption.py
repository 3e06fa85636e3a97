"""Consumption storage, provider sync, retention and gap handling."""

import logging
import time as time_module
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Callable

from .collectors.provider import ProviderError, get_provider
from .db import get_connection
from .intervals import as_date, slot_starts
from .models import ConsumptionReading, ConsumptionSlot

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30
MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0
ESTIMATION_DAYS = 7


def _normalise(ts: datetime) -> datetime:
    return ts.replace(tzinfo=None, microsecond=0)


def link_energy_account(
    user_id: str, account_id: str, password: str, provider=None, db_path: Path | None = None
) -> dict:
    """Validate provider credentials and link the account to a user."""
    provider = provider or get_provider()
    result = provider.validate_credentials(account_id, password)
    if not result["success"]:
        return result

    with get_connection(db_path) as conn:
        conn.execute(
            "INSERT OR REPLACE INTO energy_accounts (user_id, account_id) VALUES (?, ?)",
            (user_id, account_id),
        )
        conn.commit()

    logger.info("Linked energy account %s to %s", account_id, user_id)
    return result


def get_energy_account(user_id: str, db_path: Path | None = None) -> str | None:
    """Get the linked provider account id for a user."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT account_id FROM energy_accounts WHERE user_id = ?", (user_id,)
        ).fetchone()
        return row["account_id"] if row else None


def store_consumption_data(
    user_id: str, readings: list[ConsumptionReading], db_path: Path | None = None
) -> int:
    """Upsert readings keyed by (user_id, timestamp). Returns the count written."""
    with get_connection(db_path) as conn:
        for reading in readings:
            conn.execute(
                """INSERT INTO consumption_readings (user_id, timestamp, consumption_kwh)
                   VALUES (?, ?, ?)
                   ON CONFLICT(user_id, timestamp) DO UPDATE SET
                       consumption_kwh = excluded.consumption_kwh,
                       retrieved_at = CURRENT_TIMESTAMP""",
                (user_id, _normalise(reading.timestamp).isoformat(), reading.consumption_kwh),
            )
        conn.commit()
    return len(readings)


def get_consumption_for_range(
    user_id: str, start: datetime, end: datetime, db_path: Path | None = None
) -> list[ConsumptionReading]:
    """Readings with start <= timestamp <= end, in time order."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT timestamp, consumption_kwh FROM consumption_readings
               WHERE user_id = ? AND timestamp >= ? AND timestamp <= ?
               ORDER BY timestamp""",
            (user_id, _normalise(start).isoformat(), _normalise(end).isoformat()),
        ).fetchall()

        return [
            ConsumptionReading(
                timestamp=datetime.fromisoformat(row["timestamp"]),
                consumption_kwh=row["consumption_kwh"],
            )
            for row in rows
        ]


def get_consumption_for_date(
    user_id: str, day: date | datetime, db_path: Path | None = None
) -> list[ConsumptionReading]:
    """All readings stored for a calendar day."""
    target = as_date(day)
    return get_consumption_for_range(
        user_id,
        datetime.combine(target, time.min),
        datetime.combine(target, time(23, 59, 59)),
        db_path,
    )


def has_consumption_data(user_id: str, day: date | datetime, db_path: Path | None = None) -> bool:
    """Whether any reading exists for the day."""
    return len(get_consumption_for_date(user_id, day, db_path)) > 0


def cleanup_old_data(user_id: str, db_path: Path | None = None, now: datetime | None = None) -> int:
    """Delete readings older than the retention window. Returns count deleted."""
    cutoff = (now or datetime.now()) - timedelta(days=RETENTION_DAYS)
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "DELETE FROM consumption_readings WHERE user_id = ? AND timestamp < ?",
            (user_id, _normalise(cutoff).isoformat()),
        )
        conn.commit()
        return cursor.rowcount


def fetch_consumption_data(
    user_id: str,
    start: datetime,
    end: datetime,
    provider=None,
    db_path: Path | None = None,
    sleep: Callable[[float], None] = time_module.sleep,
) -> list[ConsumptionReading]:
    """Fetch readings from the provider, retrying with linear backoff.

    Makes up to MAX_ATTEMPTS attempts, waiting 1s, 2s, ... between them,
    and raises ProviderError once they are exhausted.
    """
    account_id = get_energy_account(user_id, db_path)
    if not account_id:
        raise ProviderError("Energy account not linked")

    provider = provider or get_provider()
    last_error: Exception | None = None

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            return provider.get_consumption_data(account_id, start, end)
        except Exception as e:
            last_error = e
            if attempt < MAX_ATTEMPTS:
                delay = RETRY_DELAY_SECONDS * attempt
                logger.warning(
                    "Consumption fetch failed for %s (attempt %d/%d), retrying in %.0fs: %s",
                    user_id, attempt, MAX_ATTEMPTS, delay, e,
                )
                sleep(delay)

    if isinstance(last_error, ProviderError):
        raise last_error
    raise ProviderError(f"Consumption fetch failed: {last_error}") from last_error


def sync_consumption_data(
    user_id: str,
    days: int = 7,
    provider=None,
    db_path: Path | None = None,
    sleep: Callable[[float], None] = time_module.sleep,
    now: datetime | None = None,
) -> dict:
    """Fetch the last ``days`` of readings, store them and prune old data.

    Returns dict with 'synced' count and a list of 'errors'.
    """
    errors = []
    synced = 0
    end = now or datetime.now()
    start = end - timedelta(days=days)

    try:
        readings = fetch_consumption_data(user_id, start, end, provider, db_path, sleep)
        synced = store_consumption_data(user_id, readings, db_path)
        pruned = cleanup_old_data(user_id, db_path, now=end)
        logger.info("Synced %d readings for %s (pruned %d)", synced, user_id, pruned)
    except ProviderError as e:
        logger.error("Consumption sync failed for %s: %s", user_id, e)
        errors.append(str(e))

    return {"synced": synced, "errors": errors}


def get_consumption_with_gaps(
    user_id: str, day: date | datetime, db_path: Path | None = None, today: date | None = None
) -> list[ConsumptionSlot]:
    """48 slots for a day, with None where no reading exists.

    Future dates are estimated from the trailing week's per-slot averages.
    Gaps stay None so charts and advice can tell "no data" from zero usage.
    """
    target = as_date(day)
    today = today or date.today()

    if target > today:
        return get_estimated_consumption(user_id, target, db_path, today)

    by_timestamp = {
        _normalise(r.timestamp): r.consumption_kwh
        for r in get_consumption_for_date(user_id, target, db_path)
    }
    return [ConsumptionSlot(ts, by_timestamp.get(ts)) for ts in slot_starts(target)]


def get_estimated_consumption(
    user_id: str, day: date, db_path: Path | None = None, today: date | None = None
) -> list[ConsumptionSlot]:
    """Per-slot averages of the last 7 days, rounded to 2 decimals."""
    today = today or date.today()
    start = datetime.combine(today - timedelta(days=ESTIMATION_DAYS), time.min)
    end = datetime.combine(today, time(23, 59, 59))
    history = get_consumption_for_range(user_id, start, end, db_path)

    by_slot: dict[tuple[int, int], list[float]] = defaultdict(list)
    for reading in history:
        by_slot[(reading.timestamp.hour, reading.timestamp.minute)].append(reading.consumption_kwh)

    slots = []
    for ts in slot_starts(day):
        values = by_slot.get((ts.hour, ts.minute))
        estimate = round(sum(values) / len(values), 2) if values else None
        slots.append(ConsumptionSlot(ts, estimate))
    return slots
