"""Fixtures for the store-level tests: a fresh SQLite file per test."""

from __future__ import annotations

import pytest

from reddays.config import Settings
from reddays.services.database import close_db, init_db
from reddays.services.kv_store import KeyValueStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "store" / "reddays-test.db"


@pytest.fixture
async def db(db_path):
    conn = await init_db(Settings(database_path=db_path))
    yield conn
    await close_db()


@pytest.fixture
def kv(db) -> KeyValueStore:
    return KeyValueStore()
