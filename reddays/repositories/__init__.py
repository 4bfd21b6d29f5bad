"""Repositories over the local record store and key-value store.

Modules:
    base                      — BaseRepository generic CRUD contract
    cycle_repository          — Tracked days (cycle_records)
    cycle_history_repository  — Per-user running history (cycle_history)
    stats_repository          — Per-user derived statistics (statistics_data)
    settings_repository       — Per-user settings blob (key-value store)
    cycle_facts               — Shared derivation from cycle_records
    aggregates                — Fact writes that refresh both aggregates
"""

from reddays.repositories.aggregates import AggregateRefresh, CycleAggregates, RecordedDay
from reddays.repositories.base import BaseRepository
from reddays.repositories.cycle_facts import CycleFacts, compute_cycle_stats, count_symptoms
from reddays.repositories.cycle_history_repository import CycleHistoryRepository
from reddays.repositories.cycle_repository import CycleRepository
from reddays.repositories.settings_repository import SettingsRepository
from reddays.repositories.stats_repository import StatsRepository

__all__ = [
    "BaseRepository",
    "CycleRepository",
    "CycleHistoryRepository",
    "StatsRepository",
    "SettingsRepository",
    "CycleFacts",
    "compute_cycle_stats",
    "count_symptoms",
    "CycleAggregates",
    "AggregateRefresh",
    "RecordedDay",
]
