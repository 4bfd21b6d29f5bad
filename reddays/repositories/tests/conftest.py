"""Shared fixtures for repository tests.

Every test that touches the store gets a fresh SQLite file under tmp_path.
"""

from __future__ import annotations

from datetime import date

import pytest

from reddays.config import Settings
from reddays.models.cycle import CycleRecord
from reddays.repositories import (
    CycleAggregates,
    CycleFacts,
    CycleHistoryRepository,
    CycleRepository,
    SettingsRepository,
    StatsRepository,
)
from reddays.services.database import close_db, init_db
from reddays.services.kv_store import KeyValueStore
from reddays.stats_config import StatsConfig, load_stats_config

# Canonical test user
TEST_USER_ID = "user-7f3a"


# ---------------------------------------------------------------------------
# Config / store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stats_config() -> StatsConfig:
    """The bundled stats_config.yaml."""
    return load_stats_config()


@pytest.fixture
async def db(tmp_path):
    settings = Settings(database_path=tmp_path / "reddays-test.db")
    conn = await init_db(settings)
    yield conn
    await close_db()


# ---------------------------------------------------------------------------
# Repository fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_id() -> str:
    return TEST_USER_ID


@pytest.fixture
def facts(db, stats_config: StatsConfig) -> CycleFacts:
    return CycleFacts(stats_config)


@pytest.fixture
def cycle_repo(db) -> CycleRepository:
    return CycleRepository()


@pytest.fixture
def history_repo(facts: CycleFacts) -> CycleHistoryRepository:
    return CycleHistoryRepository(facts)


@pytest.fixture
def stats_repo(facts: CycleFacts) -> StatsRepository:
    return StatsRepository(facts)


@pytest.fixture
def settings_repo(db, stats_config: StatsConfig) -> SettingsRepository:
    return SettingsRepository(KeyValueStore(), stats_config)


@pytest.fixture
def aggregates(
    cycle_repo: CycleRepository,
    history_repo: CycleHistoryRepository,
    stats_repo: StatsRepository,
) -> CycleAggregates:
    return CycleAggregates(cycle_repo, history_repo, stats_repo)


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


@pytest.fixture
def make_record():
    """Factory for unsaved CycleRecords belonging to the test user by default."""

    def _make(
        day: date,
        cycle_day: int = 1,
        symptoms: list[str] | None = None,
        notes: str = "",
        user_id: str = TEST_USER_ID,
    ) -> CycleRecord:
        return CycleRecord(
            user_id=user_id,
            date=day,
            cycle_day=cycle_day,
            symptoms=symptoms or [],
            notes=notes,
        )

    return _make
