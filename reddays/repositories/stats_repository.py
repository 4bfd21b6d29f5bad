"""Repository for the per-user ``statistics_data`` snapshot.

``update_statistics`` recomputes every derived column from the user's cycle
records and upserts the snapshot.  ``prediction_accuracy`` is not computed
here: an existing row keeps its value, a new row starts at the configured
initial accuracy.
"""

from __future__ import annotations

import logging
from typing import Any

from reddays.errors import MalformedPayloadError, RedDaysError
from reddays.models.base import utc_now
from reddays.models.statistics import CycleStats, FertilityWindow, StatisticsData
from reddays.repositories.base import BaseRepository
from reddays.repositories.codecs import (
    decode_json_object,
    encode_json,
    format_date,
    format_timestamp,
)
from reddays.repositories.cycle_facts import CycleFacts
from reddays.services.database import execute, fetch, fetchrow
from reddays.services.locks import UserLockRegistry

logger = logging.getLogger("reddays.repositories.stats")


def stats_from_row(row: dict[str, Any]) -> StatisticsData:
    data = dict(row)
    raw = data.pop("symptom_frequency", None)
    try:
        frequency = decode_json_object(raw, "symptom_frequency")
    except MalformedPayloadError:
        logger.warning("Statistics %s has an unreadable symptom_frequency %r", data.get("id"), raw)
        frequency = {}

    window_start = data.pop("fertility_window_start", None)
    window_end = data.pop("fertility_window_end", None)
    window = None
    if window_start and window_end:
        window = FertilityWindow(start_date=window_start, end_date=window_end)

    return StatisticsData.model_validate(
        {**data, "symptom_frequency": frequency, "fertility_window": window}
    )


class StatsRepository(BaseRepository[StatisticsData, int]):
    TABLE = "statistics_data"

    def __init__(self, facts: CycleFacts | None = None) -> None:
        self._facts = facts or CycleFacts()
        self._locks = UserLockRegistry()

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    async def find_by_id(self, id: int) -> StatisticsData | None:
        row = await fetchrow(f"SELECT * FROM {self.TABLE} WHERE id = ?", id)
        return stats_from_row(row) if row else None

    async def find_all(self) -> list[StatisticsData]:
        rows = await fetch(f"SELECT * FROM {self.TABLE} ORDER BY id")
        return [stats_from_row(r) for r in rows]

    async def save(self, entity: StatisticsData) -> StatisticsData:
        window = entity.fertility_window
        result = await execute(
            f"""
            INSERT INTO {self.TABLE}
                (user_id, cycle_count, average_cycle_length, shortest_cycle, longest_cycle,
                 average_period_days, prediction_accuracy, symptom_frequency,
                 fertility_window_start, fertility_window_end,
                 last_updated, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            entity.user_id,
            entity.cycle_count,
            entity.average_cycle_length,
            entity.shortest_cycle,
            entity.longest_cycle,
            entity.average_period_days,
            entity.prediction_accuracy,
            encode_json(entity.symptom_frequency),
            format_date(window.start_date) if window else None,
            format_date(window.end_date) if window else None,
            format_timestamp(entity.last_updated),
            format_timestamp(entity.created_at),
            format_timestamp(entity.updated_at),
        )
        return entity.model_copy(update={"id": result.last_row_id})

    async def update(self, id: int, entity: StatisticsData) -> StatisticsData:
        window = entity.fertility_window
        await execute(
            f"""
            UPDATE {self.TABLE}
            SET user_id = ?, cycle_count = ?, average_cycle_length = ?, shortest_cycle = ?,
                longest_cycle = ?, average_period_days = ?, prediction_accuracy = ?,
                symptom_frequency = ?, fertility_window_start = ?, fertility_window_end = ?,
                last_updated = ?, updated_at = ?
            WHERE id = ?
            """,
            entity.user_id,
            entity.cycle_count,
            entity.average_cycle_length,
            entity.shortest_cycle,
            entity.longest_cycle,
            entity.average_period_days,
            entity.prediction_accuracy,
            encode_json(entity.symptom_frequency),
            format_date(window.start_date) if window else None,
            format_date(window.end_date) if window else None,
            format_timestamp(entity.last_updated),
            format_timestamp(entity.updated_at),
            id,
        )
        return entity.model_copy(update={"id": id})

    async def delete(self, id: int) -> bool:
        result = await execute(f"DELETE FROM {self.TABLE} WHERE id = ?", id)
        return result.changes > 0

    async def exists(self, id: int) -> bool:
        row = await fetchrow(f"SELECT 1 FROM {self.TABLE} WHERE id = ? LIMIT 1", id)
        return row is not None

    # ------------------------------------------------------------------
    # Derived metrics
    # ------------------------------------------------------------------

    async def find_by_user_id(self, user_id: str) -> StatisticsData | None:
        row = await fetchrow(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? ORDER BY id LIMIT 1",
            user_id,
        )
        return stats_from_row(row) if row else None

    async def calculate_cycle_stats(self, user_id: str) -> CycleStats:
        """Compute cycle metrics from the user's records without writing anything."""
        return await self._facts.cycle_stats(user_id)

    async def get_symptom_frequency(self, user_id: str) -> dict[str, int]:
        """Occurrences of each symptom tag across all of the user's records."""
        return await self._facts.symptom_frequency(user_id)

    async def update_statistics(self, user_id: str) -> StatisticsData:
        """Recompute and upsert the user's statistics snapshot.

        Returns:
            The row re-read from the store when it already existed, otherwise
            the freshly inserted snapshot as assembled in memory.
        """
        async with self._locks.lock_for(user_id):
            stats = await self.calculate_cycle_stats(user_id)
            frequency = await self.get_symptom_frequency(user_id)
            existing = await self.find_by_user_id(user_id)
            now = format_timestamp(utc_now())

            if existing is not None:
                await execute(
                    f"""
                    UPDATE {self.TABLE}
                    SET cycle_count = ?, average_cycle_length = ?, shortest_cycle = ?,
                        longest_cycle = ?, average_period_days = ?, prediction_accuracy = ?,
                        symptom_frequency = ?, last_updated = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    stats.cycle_count,
                    stats.average_cycle_length,
                    stats.shortest_cycle,
                    stats.longest_cycle,
                    stats.average_period_days,
                    existing.prediction_accuracy,
                    encode_json(frequency),
                    now,
                    now,
                    existing.id,
                )
                refreshed = await self.find_by_id(existing.id)
                if refreshed is None:
                    raise RedDaysError(
                        f"Statistics row {existing.id} disappeared during update",
                        details={"user_id": user_id, "id": existing.id},
                    )
                logger.debug("Recomputed statistics %s for %s", existing.id, user_id)
                return refreshed

            created_at = utc_now()
            snapshot = StatisticsData(
                user_id=user_id,
                **stats.model_dump(),
                prediction_accuracy=self._facts.config.initial_accuracy,
                symptom_frequency=frequency,
                last_updated=created_at,
                created_at=created_at,
                updated_at=created_at,
            )
            saved = await self.save(snapshot)
            logger.info("Created statistics %s for %s", saved.id, user_id)
            return saved
