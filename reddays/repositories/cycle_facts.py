"""Single derivation path from raw cycle records to aggregate metrics.

Both aggregate writers read the ``cycle_records`` facts through
``CycleFacts``: the statistics repository for its snapshot, the history
repository for its summary and rebuilds.  The arithmetic itself lives in
the pure functions ``compute_cycle_stats`` and ``count_symptoms`` so it can
be exercised without a store.

Metric semantics, kept exactly as tracked so far:
- ``cycle_count`` is the number of daily entries, not of menstrual cycles.
- ``average_cycle_length`` is the mean gap in days between consecutive
  entries, each gap rounded up to a whole day.
- ``average_period_days`` is the share of entries with a cycle day at or
  below the period threshold.
"""

from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Iterable

from reddays.errors import MalformedPayloadError
from reddays.models.cycle import CycleRecord, CycleSummary
from reddays.models.statistics import CycleStats
from reddays.repositories.codecs import decode_symptoms
from reddays.repositories.cycle_repository import record_from_row
from reddays.services.database import fetch, fetchrow
from reddays.stats_config import StatsConfig, get_stats_config

logger = logging.getLogger("reddays.repositories.cycle_facts")

_SECONDS_PER_DAY = 24 * 60 * 60


def round2(value: float) -> float:
    """Round to 2 decimals, halves away from zero (multiply, round, divide by 100)."""
    return math.floor(value * 100 + 0.5) / 100


def default_cycle_stats(config: StatsConfig) -> CycleStats:
    d = config.cycle_defaults
    return CycleStats(
        cycle_count=0,
        average_cycle_length=d.average_cycle_length,
        shortest_cycle=d.shortest_cycle,
        longest_cycle=d.longest_cycle,
        average_period_days=d.average_period_days,
    )


def _row_date(row: dict[str, Any]) -> date:
    value = row["date"]
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def compute_cycle_stats(rows: list[dict[str, Any]], config: StatsConfig) -> CycleStats:
    """Derive cycle-length metrics from records ordered by date ascending.

    Args:
        rows:   Records with at least ``date`` and ``cycle_day``, oldest first.
        config: Supplies the fallback values and the period-day threshold.

    Returns:
        CycleStats.  An empty input yields the configured defaults.  With
        fewer than two records the gap metrics fall back to the defaults
        while ``cycle_count`` still reports the real number of entries.
    """
    defaults = config.cycle_defaults
    if not rows:
        return default_cycle_stats(config)

    cycle_count = len(rows)
    dates = [_row_date(r) for r in rows]

    total_gap = 0
    gap_count = 0
    shortest: int | None = None
    longest: int | None = None
    for previous, current in zip(dates, dates[1:]):
        gap = math.ceil(abs((current - previous).total_seconds()) / _SECONDS_PER_DAY)
        total_gap += gap
        gap_count += 1
        if shortest is None or gap < shortest:
            shortest = gap
        if longest is None or gap > longest:
            longest = gap

    average_length = total_gap / gap_count if gap_count > 0 else defaults.average_cycle_length

    period_days = sum(1 for r in rows if r["cycle_day"] <= config.period_max_cycle_day)
    if period_days > 0:
        average_period = period_days / (cycle_count if cycle_count > 0 else 1)
    else:
        average_period = defaults.average_period_days

    return CycleStats(
        cycle_count=cycle_count,
        average_cycle_length=round2(average_length),
        shortest_cycle=shortest if shortest is not None else defaults.shortest_cycle,
        longest_cycle=longest if longest is not None else defaults.longest_cycle,
        average_period_days=round2(average_period),
    )


def count_symptoms(payloads: Iterable[str | None]) -> dict[str, int]:
    """Count how often each symptom tag occurs across stored symptom lists.

    A payload that does not decode to a list is logged and skipped.
    """
    frequency: dict[str, int] = {}
    for raw in payloads:
        try:
            symptoms = decode_symptoms(raw)
        except MalformedPayloadError:
            logger.warning("Could not parse symptoms: %r", raw)
            continue
        for symptom in symptoms:
            frequency[symptom] = frequency.get(symptom, 0) + 1
    return frequency


class CycleFacts:
    """Read access to the ``cycle_records`` table for aggregate derivation."""

    TABLE = "cycle_records"

    def __init__(self, config: StatsConfig | None = None) -> None:
        self._config = config or get_stats_config()

    @property
    def config(self) -> StatsConfig:
        return self._config

    async def load_rows(self, user_id: str) -> list[dict[str, Any]]:
        """All raw rows for the user, oldest date first."""
        return await fetch(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? ORDER BY date ASC, id ASC",
            user_id,
        )

    async def load_records(self, user_id: str) -> list[CycleRecord]:
        return [record_from_row(r) for r in await self.load_rows(user_id)]

    async def cycle_stats(self, user_id: str) -> CycleStats:
        return compute_cycle_stats(await self.load_rows(user_id), self._config)

    async def symptom_frequency(self, user_id: str) -> dict[str, int]:
        rows = await fetch(f"SELECT symptoms FROM {self.TABLE} WHERE user_id = ?", user_id)
        return count_symptoms(r["symptoms"] for r in rows)

    async def summarize(self, user_id: str) -> CycleSummary:
        """Count, date bounds and mean cycle day of the user's records."""
        row = await fetchrow(
            f"""
            SELECT
                COUNT(*) AS cycle_count,
                MIN(date) AS start_date,
                MAX(date) AS end_date,
                AVG(cycle_day) AS average_length
            FROM {self.TABLE}
            WHERE user_id = ?
            """,
            user_id,
        )
        default_length = self._config.history_average_length
        if row is None:
            return CycleSummary(average_length=default_length)
        return CycleSummary(
            cycle_count=row["cycle_count"] or 0,
            start_date=row["start_date"],
            end_date=row["end_date"],
            average_length=(
                row["average_length"] if row["average_length"] is not None else default_length
            ),
        )
