"""Tests for the SQLite connection helpers and schema migrations."""

from __future__ import annotations

import asyncio

import aiosqlite
import pytest

from reddays.config import Settings
from reddays.services import database
from reddays.services.database import (
    close_db,
    execute,
    executemany,
    fetch,
    fetchrow,
    fetchval,
    get_db,
    init_db,
    transaction,
)
from reddays.services.schema import (
    SCHEMA_VERSION,
    TABLES,
    apply_migrations,
    current_version,
    reset_database,
)


class TestConnection:
    async def test_init_creates_parent_directory(self, db, db_path) -> None:
        assert db_path.exists()

    async def test_init_is_idempotent(self, db) -> None:
        assert await init_db() is db
        assert await get_db() is db

    async def test_get_db_opens_lazily(self, tmp_path, monkeypatch) -> None:
        settings = Settings(database_path=tmp_path / "lazy.db")
        monkeypatch.setattr(database, "get_settings", lambda: settings)
        try:
            conn = await get_db()
            assert await current_version(conn) == SCHEMA_VERSION
            assert (tmp_path / "lazy.db").exists()
        finally:
            await close_db()

    async def test_overlapping_first_use_opens_one_connection(self, tmp_path, monkeypatch) -> None:
        settings = Settings(database_path=tmp_path / "shared.db")
        monkeypatch.setattr(database, "get_settings", lambda: settings)
        opened: list[str] = []
        real_connect = aiosqlite.connect

        def counting_connect(target, *args, **kwargs):
            opened.append(target)
            return real_connect(target, *args, **kwargs)

        monkeypatch.setattr(aiosqlite, "connect", counting_connect)
        try:
            first, second = await asyncio.gather(get_db(), get_db())
            assert first is second
            assert opened == [str(tmp_path / "shared.db")]
        finally:
            await close_db()
        assert database._db is None

    async def test_close_then_reopen(self, db, db_path) -> None:
        await close_db()
        reopened = await init_db(Settings(database_path=db_path))
        assert reopened is not db
        assert await fetchval("SELECT COUNT(*) FROM cycle_records") == 0


class TestHelpers:
    async def test_execute_reports_row_id_and_changes(self, db) -> None:
        result = await execute(
            "INSERT INTO cycle_records (user_id, date, cycle_day, symptoms, notes, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            "u1", "2024-01-01", 1, "[]", "", "2024-01-01T00:00:00", "2024-01-01T00:00:00",
        )
        assert result.last_row_id == 1
        assert result.changes == 1

        deleted = await execute("DELETE FROM cycle_records WHERE id = ?", 42)
        assert deleted.changes == 0

    async def test_fetch_returns_dicts(self, db) -> None:
        await executemany(
            "INSERT INTO key_value_store (key, value) VALUES (?, ?)",
            [("a", "1"), ("b", "2")],
        )
        rows = await fetch("SELECT key, value FROM key_value_store ORDER BY key")
        assert rows == [{"key": "a", "value": "1"}, {"key": "b", "value": "2"}]
        assert await fetchrow("SELECT value FROM key_value_store WHERE key = ?", "b") == {"value": "2"}
        assert await fetchrow("SELECT value FROM key_value_store WHERE key = ?", "z") is None
        assert await fetchval("SELECT value FROM key_value_store WHERE key = ?", "z") is None

    async def test_failed_statement_propagates(self, db) -> None:
        with pytest.raises(aiosqlite.Error):
            await execute("INSERT INTO no_such_table VALUES (1)")

    async def test_constraint_violation_propagates(self, db) -> None:
        await execute("INSERT INTO key_value_store (key, value) VALUES (?, ?)", "k", "v")
        with pytest.raises(aiosqlite.IntegrityError):
            await execute("INSERT INTO key_value_store (key, value) VALUES (?, ?)", "k", "w")


class TestTransaction:
    async def test_commits_on_success(self, db) -> None:
        async with transaction() as conn:
            await conn.execute("INSERT INTO key_value_store (key, value) VALUES ('a', '1')")
            await conn.execute("INSERT INTO key_value_store (key, value) VALUES ('b', '2')")
        assert await fetchval("SELECT COUNT(*) FROM key_value_store") == 2

    async def test_rolls_back_on_error(self, db) -> None:
        with pytest.raises(RuntimeError):
            async with transaction() as conn:
                await conn.execute("INSERT INTO key_value_store (key, value) VALUES ('a', '1')")
                raise RuntimeError("boom")
        assert await fetchval("SELECT COUNT(*) FROM key_value_store") == 0


class TestMigrations:
    async def test_fresh_database_is_at_latest_version(self, db) -> None:
        assert await current_version(db) == SCHEMA_VERSION
        names = {r["name"] for r in await fetch("SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert set(TABLES) <= names

    async def test_reapplying_is_a_no_op(self, db) -> None:
        assert await apply_migrations(db) == []

    async def test_history_table_has_cycles_column(self, db) -> None:
        columns = {r["name"] for r in await fetch("PRAGMA table_info(cycle_history)")}
        assert {"cycles", "start_date", "end_date", "average_length", "next_expected_date"} <= columns

    async def test_reset_wipes_data(self, db) -> None:
        await execute("INSERT INTO key_value_store (key, value) VALUES (?, ?)", "k", "v")
        await reset_database(db)
        assert await current_version(db) == SCHEMA_VERSION
        assert await fetchval("SELECT COUNT(*) FROM key_value_store") == 0
