"""Pydantic models for cycle records, aggregates, statistics and settings."""

from reddays.models.base import RedDaysBase, TimestampMixin, utc_now
from reddays.models.cycle import CycleHistory, CycleRecord, CycleSummary
from reddays.models.settings import AppSettings, SettingsSnapshot, Theme, Units
from reddays.models.statistics import CycleStats, FertilityWindow, StatisticsData

__all__ = [
    "RedDaysBase",
    "TimestampMixin",
    "utc_now",
    "CycleRecord",
    "CycleHistory",
    "CycleSummary",
    "CycleStats",
    "StatisticsData",
    "FertilityWindow",
    "AppSettings",
    "SettingsSnapshot",
    "Theme",
    "Units",
]
