"""Keep the per-user aggregates in step with the cycle-record facts.

``CycleAggregates`` is the write path to use when a tracked day changes:
it stores the fact first, then brings the cycle history and the statistics
snapshot up to date from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reddays.errors import MalformedPayloadError
from reddays.models.cycle import CycleHistory, CycleRecord
from reddays.models.statistics import StatisticsData
from reddays.repositories.cycle_history_repository import CycleHistoryRepository
from reddays.repositories.cycle_repository import CycleRepository
from reddays.repositories.stats_repository import StatsRepository
from reddays.services.locks import UserLockRegistry

logger = logging.getLogger("reddays.repositories.aggregates")


@dataclass
class AggregateRefresh:
    history: CycleHistory
    statistics: StatisticsData


@dataclass
class RecordedDay:
    record: CycleRecord
    history: CycleHistory
    statistics: StatisticsData
    replaced: bool = False


class CycleAggregates:
    """Write facts and refresh both derived views of them.

    Usage::

        aggregates = CycleAggregates(CycleRepository(), history_repo, stats_repo)
        result = await aggregates.record_day(record)
        result.statistics.cycle_count
    """

    def __init__(
        self,
        records: CycleRepository,
        history: CycleHistoryRepository,
        stats: StatsRepository,
    ) -> None:
        self.records = records
        self.history = history
        self.stats = stats
        self._locks = UserLockRegistry()

    async def record_day(self, record: CycleRecord) -> RecordedDay:
        """Store the day's record and update the history and statistics.

        A new day is appended to the history.  Re-recording a day that is
        already stored replaces it and rebuilds the history from the facts,
        so the list never holds two entries for one date.  Calls for the
        same user run one at a time.
        """
        async with self._locks.lock_for(record.user_id):
            existing = await self.records.find_by_date(record.user_id, record.date)
            saved = await self.records.save_for_date(record)

            if existing is None:
                try:
                    history = await self.history.add_cycle_record(saved.user_id, saved)
                except MalformedPayloadError:
                    logger.warning("Rebuilding unreadable cycle history for %s", saved.user_id)
                    history = await self.history.rebuild_from_records(saved.user_id)
            else:
                history = await self.history.rebuild_from_records(saved.user_id)
            statistics = await self.stats.update_statistics(saved.user_id)
        return RecordedDay(
            record=saved,
            history=history,
            statistics=statistics,
            replaced=existing is not None,
        )

    async def remove_record(self, record_id: int) -> AggregateRefresh | None:
        """Delete a record and refresh its owner's aggregates.

        Returns:
            The refreshed aggregates, or None if no such record was stored.
        """
        record = await self.records.find_by_id(record_id)
        if record is None:
            return None
        async with self._locks.lock_for(record.user_id):
            if not await self.records.delete(record_id):
                return None
            return await self._refresh(record.user_id)

    async def refresh(self, user_id: str) -> AggregateRefresh:
        """Rebuild the history and recompute statistics from the stored facts."""
        async with self._locks.lock_for(user_id):
            return await self._refresh(user_id)

    async def _refresh(self, user_id: str) -> AggregateRefresh:
        history = await self.history.rebuild_from_records(user_id)
        statistics = await self.stats.update_statistics(user_id)
        logger.info(
            "Refreshed aggregates for %s (%d records)", user_id, statistics.cycle_count
        )
        return AggregateRefresh(history=history, statistics=statistics)
