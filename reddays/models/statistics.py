"""Pydantic models for the derived statistics snapshot."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from reddays.models.base import RedDaysBase, TimestampMixin, utc_now


class FertilityWindow(RedDaysBase):
    start_date: date
    end_date: date


class CycleStats(RedDaysBase):
    """Cycle-length metrics computed from a user's records.

    ``cycle_count`` counts daily entries and ``average_cycle_length`` is the
    mean gap between consecutive entries.
    """

    cycle_count: int = 0
    average_cycle_length: float = 28.0
    shortest_cycle: int = 21
    longest_cycle: int = 35
    average_period_days: float = 5.0


class StatisticsData(CycleStats, TimestampMixin):
    """Per-user statistics snapshot as stored in ``statistics_data``."""

    id: int | None = None
    user_id: str = Field(min_length=1)
    prediction_accuracy: float = 0.0
    symptom_frequency: dict[str, int] = Field(default_factory=dict)
    fertility_window: FertilityWindow | None = None
    last_updated: datetime = Field(default_factory=utc_now)
