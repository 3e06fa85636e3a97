"""Database connection and schema management."""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "energy-advisor" / "energy.db"
DB_PATH_ENV = "ENERGY_ADVISOR_DB"

SCHEMA = """
-- Tariff structures (one active per user, latest effective_date wins)
CREATE TABLE IF NOT EXISTS tariff_structures (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    effective_date TEXT NOT NULL
);

-- Tariff periods; position preserves declaration order for first-match-wins
CREATE TABLE IF NOT EXISTS tariff_periods (
    id INTEGER PRIMARY KEY,
    structure_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    name TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    price_per_kwh REAL NOT NULL,
    days_of_week TEXT NOT NULL,
    FOREIGN KEY (structure_id) REFERENCES tariff_structures(id) ON DELETE CASCADE
);

-- Solar system configuration
CREATE TABLE IF NOT EXISTS solar_systems (
    user_id TEXT PRIMARY KEY,
    has_solar INTEGER NOT NULL DEFAULT 0,
    system_size_kw REAL,
    tilt_degrees REAL,
    orientation TEXT
);

-- Half-hourly consumption readings
CREATE TABLE IF NOT EXISTS consumption_readings (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    consumption_kwh REAL NOT NULL,
    retrieved_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(user_id, timestamp)
);

-- Electric vehicles
CREATE TABLE IF NOT EXISTS electric_vehicles (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    make TEXT NOT NULL,
    model TEXT NOT NULL,
    battery_capacity_kwh REAL NOT NULL,
    charging_speed_kw REAL NOT NULL DEFAULT 7.0,
    average_daily_miles REAL NOT NULL
);

-- Home batteries
CREATE TABLE IF NOT EXISTS home_batteries (
    id INTEGER PRIMARY KEY,
    user_id TEXT NOT NULL,
    power_kw REAL NOT NULL,
    capacity_kwh REAL NOT NULL
);

-- Linked energy-provider accounts
CREATE TABLE IF NOT EXISTS energy_accounts (
    user_id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    linked_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Demand-response events
CREATE TABLE IF NOT EXISTS energy_events (
    id INTEGER PRIMARY KEY,
    event_type TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    incentive_description TEXT NOT NULL,
    incentive_amount REAL NOT NULL,
    target_user_ids TEXT NOT NULL DEFAULT 'ALL'
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_consumption_user ON consumption_readings(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_tariff_user ON tariff_structures(user_id, effective_date);
CREATE INDEX IF NOT EXISTS idx_periods_structure ON tariff_periods(structure_id, position);
CREATE INDEX IF NOT EXISTS idx_ev_user ON electric_vehicles(user_id);
CREATE INDEX IF NOT EXISTS idx_battery_user ON home_batteries(user_id);
CREATE INDEX IF NOT EXISTS idx_events_start ON energy_events(start_time);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(os.environ.get(DB_PATH_ENV) or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def migrate_db(db_path: Path | None = None) -> None:
    """Apply database migrations for existing databases."""
    with get_connection(db_path) as conn:
        cursor = conn.execute("PRAGMA table_info(electric_vehicles)")
        existing_columns = {row["name"] for row in cursor.fetchall()}

        # Early databases stored EVs without a charger rating
        if existing_columns and "charging_speed_kw" not in existing_columns:
            conn.execute(
                "ALTER TABLE electric_vehicles ADD COLUMN charging_speed_kw REAL NOT NULL DEFAULT 7.0"
            )

        conn.commit()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()

    migrate_db(db_path)


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        row = conn.execute(
            "SELECT COUNT(*) as count, MIN(timestamp) as earliest, MAX(timestamp) as latest FROM consumption_readings"
        ).fetchone()
        stats["consumption_readings"] = {
            "count": row["count"],
            "earliest": row["earliest"],
            "latest": row["latest"],
        }

        rows = conn.execute(
            "SELECT user_id, COUNT(*) as count FROM consumption_readings GROUP BY user_id"
        ).fetchall()
        stats["consumption_by_user"] = {row["user_id"]: row["count"] for row in rows}

        for table in ("tariff_structures", "solar_systems", "electric_vehicles", "home_batteries", "energy_events"):
            row = conn.execute(f"SELECT COUNT(*) as count FROM {table}").fetchone()
            stats[table] = {"count": row["count"]}

        return stats
