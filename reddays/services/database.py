"""Process-wide SQLite connection for the local record store.

A single ``aiosqlite`` connection is opened lazily on first use and reused
for the lifetime of the process.  Repositories never touch the connection
directly; they go through the ``execute`` / ``fetch*`` helpers below, which
log store failures and re-raise them unchanged.

Usage::

    rows = await fetch("SELECT * FROM cycle_records WHERE user_id = ?", user_id)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncGenerator, Iterable, Sequence

import aiosqlite

from reddays.config import Settings, get_settings
from reddays.services.schema import apply_migrations

logger = logging.getLogger("reddays.db")

# Module-level connection, created on first use
_db: aiosqlite.Connection | None = None

# Serializes the first open; rebound when the running event loop changes
_open_lock: asyncio.Lock | None = None
_open_lock_loop: asyncio.AbstractEventLoop | None = None


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a write statement.

    Attributes:
        last_row_id: Row id generated by the last INSERT (None otherwise).
        changes:     Number of rows the statement actually touched.
    """

    last_row_id: int | None
    changes: int


async def init_db(
    settings: Settings | None = None, path: Path | str | None = None
) -> aiosqlite.Connection:
    """Open the SQLite connection and apply pending migrations.

    Safe to call more than once, including from overlapping tasks: an
    already open connection is returned as is and only one is ever opened.
    """
    global _db
    if _db is not None:
        return _db

    async with _get_open_lock():
        if _db is not None:
            return _db

        s = settings or get_settings()
        target = path if path is not None else s.database_path
        if str(target) != ":memory:":
            Path(target).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(target))
        conn.row_factory = aiosqlite.Row
        try:
            if s.auto_migrate:
                await apply_migrations(conn)
        except aiosqlite.Error:
            logger.exception("Schema migration failed for %s", target)
            await conn.close()
            raise
        _db = conn
        logger.info("Database opened at %s", target)
        return _db


def _get_open_lock() -> asyncio.Lock:
    global _open_lock, _open_lock_loop
    loop = asyncio.get_running_loop()
    if _open_lock is None or _open_lock_loop is not loop:
        _open_lock = asyncio.Lock()
        _open_lock_loop = loop
    return _open_lock


async def close_db() -> None:
    """Close the connection. The next helper call reopens it."""
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("Database closed")


async def get_db() -> aiosqlite.Connection:
    if _db is None:
        return await init_db()
    return _db


@asynccontextmanager
async def transaction() -> AsyncGenerator[aiosqlite.Connection, None]:
    """Run several statements atomically.

    Usage::

        async with transaction() as conn:
            await conn.execute("DELETE FROM key_value_store WHERE key = ?", (key,))
            await conn.execute("INSERT INTO key_value_store ...", (key, value))

    Commits when the block exits cleanly and rolls back on any exception.
    """
    conn = await get_db()
    try:
        yield conn
    except BaseException:
        await conn.rollback()
        raise
    else:
        await conn.commit()


async def execute(query: str, *args: Any) -> ExecuteResult:
    """Execute a single write statement and commit it."""
    conn = await get_db()
    try:
        cursor = await conn.execute(query, args)
        await conn.commit()
    except aiosqlite.Error as exc:
        logger.error("Statement failed: %s | %s", exc, _oneline(query))
        await conn.rollback()
        raise
    result = ExecuteResult(last_row_id=cursor.lastrowid, changes=cursor.rowcount)
    await cursor.close()
    return result


async def executemany(query: str, rows: Iterable[Sequence[Any]]) -> None:
    """Execute one statement for every parameter row inside one commit."""
    conn = await get_db()
    try:
        await conn.executemany(query, rows)
        await conn.commit()
    except aiosqlite.Error as exc:
        logger.error("Batch statement failed: %s | %s", exc, _oneline(query))
        await conn.rollback()
        raise


async def fetch(query: str, *args: Any) -> list[dict[str, Any]]:
    """Fetch all rows as plain dicts."""
    conn = await get_db()
    try:
        async with conn.execute(query, args) as cursor:
            rows = await cursor.fetchall()
    except aiosqlite.Error as exc:
        logger.error("Query failed: %s | %s", exc, _oneline(query))
        raise
    return [dict(r) for r in rows]


async def fetchrow(query: str, *args: Any) -> dict[str, Any] | None:
    """Fetch the first row as a dict, or None when nothing matched."""
    conn = await get_db()
    try:
        async with conn.execute(query, args) as cursor:
            row = await cursor.fetchone()
    except aiosqlite.Error as exc:
        logger.error("Query failed: %s | %s", exc, _oneline(query))
        raise
    return dict(row) if row is not None else None


async def fetchval(query: str, *args: Any) -> Any:
    """Fetch the first column of the first row."""
    conn = await get_db()
    try:
        async with conn.execute(query, args) as cursor:
            row = await cursor.fetchone()
    except aiosqlite.Error as exc:
        logger.error("Query failed: %s | %s", exc, _oneline(query))
        raise
    return row[0] if row is not None else None


def _oneline(query: str) -> str:
    return " ".join(query.split())
