"""Schema migrations for the local SQLite store.

Each migration is a list of DDL statements keyed by version.  The applied
version is tracked in ``PRAGMA user_version`` so ``apply_migrations`` is
idempotent and cheap to call on every connect.
"""

from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("reddays.db.schema")

TABLES = ("cycle_records", "cycle_history", "statistics_data", "app_settings", "key_value_store")

_INITIAL_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS cycle_records (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        date TEXT NOT NULL,
        cycle_day INTEGER NOT NULL,
        symptoms TEXT,
        notes TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cycle_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        cycles TEXT NOT NULL DEFAULT '[]',
        start_date TEXT,
        end_date TEXT,
        average_length INTEGER DEFAULT 28,
        next_expected_date TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS statistics_data (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        cycle_count INTEGER DEFAULT 0,
        average_cycle_length REAL DEFAULT 28.0,
        shortest_cycle INTEGER DEFAULT 21,
        longest_cycle INTEGER DEFAULT 35,
        average_period_days REAL DEFAULT 5.0,
        prediction_accuracy REAL DEFAULT 0.0,
        symptom_frequency TEXT,
        fertility_window_start TEXT,
        fertility_window_end TEXT,
        last_updated TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        theme TEXT DEFAULT 'auto',
        notifications_enabled BOOLEAN DEFAULT 1,
        reminder_time TEXT DEFAULT '08:00',
        units TEXT DEFAULT 'metric',
        language TEXT DEFAULT 'en',
        privacy_mode BOOLEAN DEFAULT 0,
        data_sync_enabled BOOLEAN DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS key_value_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    # Lookups are always per user; none of these are UNIQUE.
    "CREATE INDEX IF NOT EXISTS idx_cycle_records_user_date ON cycle_records (user_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_cycle_history_user ON cycle_history (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_statistics_data_user ON statistics_data (user_id)",
]

MIGRATIONS: dict[int, list[str]] = {
    1: _INITIAL_SCHEMA,
}

SCHEMA_VERSION = max(MIGRATIONS)


async def current_version(conn: aiosqlite.Connection) -> int:
    async with conn.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
    return int(row[0]) if row else 0


async def apply_migrations(conn: aiosqlite.Connection) -> list[int]:
    """Apply every migration newer than the stored ``user_version``.

    Returns:
        The versions applied in this call (empty when already up to date).
    """
    applied: list[int] = []
    version = await current_version(conn)
    for target in sorted(v for v in MIGRATIONS if v > version):
        for statement in MIGRATIONS[target]:
            await conn.execute(statement)
        # PRAGMA does not accept bound parameters
        await conn.execute(f"PRAGMA user_version = {int(target)}")
        await conn.commit()
        applied.append(target)
        logger.info("Applied schema migration %d", target)
    return applied


async def drop_schema(conn: aiosqlite.Connection) -> None:
    """Drop every table and reset the schema version to 0."""
    for table in TABLES:
        await conn.execute(f"DROP TABLE IF EXISTS {table}")
    await conn.execute("PRAGMA user_version = 0")
    await conn.commit()
    logger.warning("Dropped all tables")


async def reset_database(conn: aiosqlite.Connection) -> None:
    """Wipe all data by dropping and re-creating the schema."""
    await drop_schema(conn)
    await apply_migrations(conn)
