"""Repository for the per-user ``cycle_history`` aggregate.

The history keeps a denormalized, append-only copy of the user's cycle
records.  ``update_cycles`` / ``add_cycle_record`` only replace that list;
the date bounds and average length are carried over from the stored row
untouched.  ``rebuild_from_records`` is the path that re-derives all of
them from ``cycle_records``.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

from pydantic import ValidationError

from reddays.errors import MalformedPayloadError
from reddays.models.base import utc_now
from reddays.models.cycle import CycleHistory, CycleRecord, CycleSummary
from reddays.repositories.base import BaseRepository
from reddays.repositories.codecs import (
    decode_json_list,
    encode_json,
    format_date,
    format_timestamp,
)
from reddays.repositories.cycle_facts import CycleFacts, compute_cycle_stats
from reddays.repositories.cycle_repository import record_from_row
from reddays.services.database import execute, fetch, fetchrow
from reddays.services.locks import UserLockRegistry

logger = logging.getLogger("reddays.repositories.history")


def _encode_cycles(cycles: Sequence[CycleRecord]) -> str:
    return encode_json([c.model_dump(mode="json") for c in cycles])


def decode_cycles(raw: str | None) -> list[CycleRecord]:
    """Decode a stored cycles list.

    Raises:
        MalformedPayloadError: If ``raw`` is not a JSON list of cycle records.
    """
    try:
        return [CycleRecord.model_validate(c) for c in decode_json_list(raw, "cycles")]
    except ValidationError as exc:
        raise MalformedPayloadError("cycles", raw) from exc


def history_from_row(row: dict[str, Any]) -> CycleHistory:
    data = dict(row)
    raw = data.pop("cycles", None)
    try:
        cycles = decode_cycles(raw)
    except MalformedPayloadError:
        logger.error("History %s has an unreadable cycles list; reading it as empty", data.get("id"))
        cycles = []
    return CycleHistory.model_validate({**data, "cycles": cycles})


class CycleHistoryRepository(BaseRepository[CycleHistory, int]):
    TABLE = "cycle_history"

    def __init__(self, facts: CycleFacts | None = None) -> None:
        self._facts = facts or CycleFacts()
        self._locks = UserLockRegistry()

    @property
    def default_average_length(self) -> int:
        return self._facts.config.history_average_length

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    async def find_by_id(self, id: int) -> CycleHistory | None:
        row = await fetchrow(f"SELECT * FROM {self.TABLE} WHERE id = ?", id)
        return history_from_row(row) if row else None

    async def find_all(self) -> list[CycleHistory]:
        rows = await fetch(f"SELECT * FROM {self.TABLE} ORDER BY id")
        return [history_from_row(r) for r in rows]

    async def save(self, entity: CycleHistory) -> CycleHistory:
        result = await execute(
            f"""
            INSERT INTO {self.TABLE}
                (user_id, cycles, start_date, end_date, average_length,
                 next_expected_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            entity.user_id,
            _encode_cycles(entity.cycles),
            format_date(entity.start_date),
            format_date(entity.end_date),
            entity.average_length,
            format_date(entity.next_expected_date),
            format_timestamp(entity.created_at),
            format_timestamp(entity.updated_at),
        )
        return entity.model_copy(update={"id": result.last_row_id})

    async def update(self, id: int, entity: CycleHistory) -> CycleHistory:
        await execute(
            f"""
            UPDATE {self.TABLE}
            SET user_id = ?, cycles = ?, start_date = ?, end_date = ?, average_length = ?,
                next_expected_date = ?, updated_at = ?
            WHERE id = ?
            """,
            entity.user_id,
            _encode_cycles(entity.cycles),
            format_date(entity.start_date),
            format_date(entity.end_date),
            entity.average_length,
            format_date(entity.next_expected_date),
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
    # Per-user aggregate
    # ------------------------------------------------------------------

    async def find_by_user_id(self, user_id: str) -> CycleHistory | None:
        """The user's history row; the oldest one if duplicates exist."""
        row = await fetchrow(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? ORDER BY id LIMIT 1",
            user_id,
        )
        return history_from_row(row) if row else None

    async def update_cycles(self, user_id: str, cycles: Sequence[CycleRecord]) -> CycleHistory:
        """Replace the user's cycles list, creating the history if needed.

        An existing row keeps its start/end dates and average length; a new
        row starts with no bounds and the default average length.
        """
        async with self._locks.lock_for(user_id):
            return await self._write_cycles(user_id, list(cycles))

    async def add_cycle_record(self, user_id: str, cycle_record: CycleRecord) -> CycleHistory:
        """Append one record to the user's cycles list.

        Raises:
            MalformedPayloadError: If the stored list cannot be decoded.  The
                stored row is left untouched; ``rebuild_from_records``
                restores it from the cycle records.
        """
        async with self._locks.lock_for(user_id):
            row = await fetchrow(
                f"SELECT id, cycles FROM {self.TABLE} WHERE user_id = ? ORDER BY id LIMIT 1",
                user_id,
            )
            if row is None:
                return await self._write_cycles(user_id, [cycle_record])
            try:
                stored = decode_cycles(row["cycles"])
            except MalformedPayloadError:
                logger.error(
                    "Refusing to append to history %s for %s: stored cycles list is unreadable",
                    row["id"],
                    user_id,
                )
                raise
            return await self._write_cycles(user_id, [*stored, cycle_record])

    async def get_cycle_summary(self, user_id: str) -> CycleSummary:
        """Count, date bounds and mean cycle day computed from ``cycle_records``.

        Independent of the cycles list stored on the history row.
        """
        return await self._facts.summarize(user_id)

    async def rebuild_from_records(self, user_id: str) -> CycleHistory:
        """Re-derive the whole history from the user's cycle records.

        ``cycles`` becomes every record oldest first, the bounds become the
        first and last record dates, and ``average_length`` the rounded
        average gap between consecutive records.
        """
        async with self._locks.lock_for(user_id):
            rows = await self._facts.load_rows(user_id)
            records = [record_from_row(r) for r in rows]
            stats = compute_cycle_stats(rows, self._facts.config)
            now = utc_now()
            fields = {
                "cycles": records,
                "start_date": records[0].date if records else None,
                "end_date": records[-1].date if records else None,
                "average_length": math.floor(stats.average_cycle_length + 0.5),
                "updated_at": now,
            }

            history = await self.find_by_user_id(user_id)
            if history is not None:
                rebuilt = await self.update(history.id, history.model_copy(update=fields))
            else:
                rebuilt = await self.save(CycleHistory(user_id=user_id, created_at=now, **fields))
            logger.info("Rebuilt cycle history for %s from %d records", user_id, len(records))
            return rebuilt

    async def _write_cycles(self, user_id: str, cycles: list[CycleRecord]) -> CycleHistory:
        history = await self.find_by_user_id(user_id)
        now = utc_now()

        if history is not None:
            await execute(
                f"""
                UPDATE {self.TABLE}
                SET cycles = ?, start_date = ?, end_date = ?, average_length = ?, updated_at = ?
                WHERE id = ?
                """,
                _encode_cycles(cycles),
                format_date(history.start_date),
                format_date(history.end_date),
                history.average_length,
                format_timestamp(now),
                history.id,
            )
            return history.model_copy(update={"cycles": cycles, "updated_at": now})

        created = CycleHistory(
            user_id=user_id,
            cycles=cycles,
            start_date=None,
            end_date=None,
            average_length=self.default_average_length,
            created_at=now,
            updated_at=now,
        )
        saved = await self.save(created)
        logger.info("Created cycle history %s for %s", saved.id, user_id)
        return saved
