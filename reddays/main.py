"""RedDays data layer — process entry point.

Usage::

    async with open_data_layer() as data:
        await data.aggregates.record_day(record)
        stats = await data.stats.find_by_user_id(user_id)
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from reddays.config import Settings, get_settings
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
from reddays.stats_config import StatsConfig, get_stats_config, load_stats_config

DATA_LAYER_VERSION = "1.0.0"

logger = logging.getLogger("reddays")


# ---------- Logging ----------

def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


# ---------- Wiring ----------

@dataclass
class DataLayer:
    """Every repository, sharing one store connection and one stats config."""

    cycles: CycleRepository
    history: CycleHistoryRepository
    stats: StatsRepository
    settings: SettingsRepository
    aggregates: CycleAggregates
    kv_store: KeyValueStore


def build_data_layer(config: StatsConfig | None = None) -> DataLayer:
    config = config or get_stats_config()
    facts = CycleFacts(config)
    cycles = CycleRepository()
    history = CycleHistoryRepository(facts)
    stats = StatsRepository(facts)
    kv_store = KeyValueStore()
    return DataLayer(
        cycles=cycles,
        history=history,
        stats=stats,
        settings=SettingsRepository(kv_store, config),
        aggregates=CycleAggregates(cycles, history, stats),
        kv_store=kv_store,
    )


@asynccontextmanager
async def open_data_layer(
    settings: Settings | None = None,
) -> AsyncGenerator[DataLayer, None]:
    """Open the store, yield the wired repositories, close the store on exit."""
    settings = settings or get_settings()
    configure_logging(settings)
    logger.info(
        "Starting %s data layer v%s [%s]",
        settings.app_name,
        DATA_LAYER_VERSION,
        settings.environment,
    )
    config = (
        load_stats_config(settings.stats_config_path)
        if settings.stats_config_path
        else get_stats_config()
    )
    await init_db(settings)
    try:
        yield build_data_layer(config)
    finally:
        await close_db()
