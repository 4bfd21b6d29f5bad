"""Repository for individual tracked days in ``cycle_records``.

One row per tracked day.  The store does not enforce one row per
(user, date); ``save_for_date`` is the upsert to use when that matters.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from reddays.errors import MalformedPayloadError
from reddays.models.base import utc_now
from reddays.models.cycle import CycleRecord
from reddays.repositories.base import BaseRepository
from reddays.repositories.codecs import (
    decode_symptoms,
    encode_symptoms,
    format_date,
    format_timestamp,
)
from reddays.services.database import execute, fetch, fetchrow
from reddays.services.locks import UserLockRegistry

logger = logging.getLogger("reddays.repositories.cycle")


def record_from_row(row: dict[str, Any]) -> CycleRecord:
    """Build a CycleRecord from a ``cycle_records`` row.

    An unreadable symptom payload is logged and read back as an empty list.
    """
    data = dict(row)
    raw = data.pop("symptoms", None)
    if raw is None:
        symptoms: list[str] = []
    else:
        try:
            symptoms = decode_symptoms(raw)
        except MalformedPayloadError:
            logger.warning("Record %s has unreadable symptoms %r", data.get("id"), raw)
            symptoms = []
    data["notes"] = data.get("notes") or ""
    return CycleRecord.model_validate({**data, "symptoms": symptoms})


class CycleRepository(BaseRepository[CycleRecord, int]):
    TABLE = "cycle_records"

    def __init__(self) -> None:
        self._locks = UserLockRegistry()

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    async def find_by_id(self, id: int) -> CycleRecord | None:
        row = await fetchrow(f"SELECT * FROM {self.TABLE} WHERE id = ?", id)
        return record_from_row(row) if row else None

    async def find_all(self) -> list[CycleRecord]:
        rows = await fetch(f"SELECT * FROM {self.TABLE} ORDER BY id")
        return [record_from_row(r) for r in rows]

    async def save(self, entity: CycleRecord) -> CycleRecord:
        result = await execute(
            f"""
            INSERT INTO {self.TABLE}
                (user_id, date, cycle_day, symptoms, notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            entity.user_id,
            format_date(entity.date),
            entity.cycle_day,
            encode_symptoms(entity.symptoms),
            entity.notes,
            format_timestamp(entity.created_at),
            format_timestamp(entity.updated_at),
        )
        logger.debug("Saved cycle record %s for %s on %s", result.last_row_id, entity.user_id, entity.date)
        return entity.model_copy(update={"id": result.last_row_id})

    async def update(self, id: int, entity: CycleRecord) -> CycleRecord:
        await execute(
            f"""
            UPDATE {self.TABLE}
            SET user_id = ?, date = ?, cycle_day = ?, symptoms = ?, notes = ?, updated_at = ?
            WHERE id = ?
            """,
            entity.user_id,
            format_date(entity.date),
            entity.cycle_day,
            encode_symptoms(entity.symptoms),
            entity.notes,
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
    # Date-indexed queries
    # ------------------------------------------------------------------

    async def find_by_date(self, user_id: str, day: date) -> CycleRecord | None:
        row = await fetchrow(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? AND date = ? ORDER BY id LIMIT 1",
            user_id,
            format_date(day),
        )
        return record_from_row(row) if row else None

    async def find_by_user_id(self, user_id: str) -> list[CycleRecord]:
        """All records for the user, most recent date first."""
        rows = await fetch(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? ORDER BY date DESC, id DESC",
            user_id,
        )
        return [record_from_row(r) for r in rows]

    async def find_by_date_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[CycleRecord]:
        """Records with ``start_date <= date <= end_date``, oldest first."""
        rows = await fetch(
            f"""
            SELECT * FROM {self.TABLE}
            WHERE user_id = ? AND date BETWEEN ? AND ?
            ORDER BY date ASC, id ASC
            """,
            user_id,
            format_date(start_date),
            format_date(end_date),
        )
        return [record_from_row(r) for r in rows]

    async def get_last_cycle_record(self, user_id: str) -> CycleRecord | None:
        row = await fetchrow(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? ORDER BY date DESC, id DESC LIMIT 1",
            user_id,
        )
        return record_from_row(row) if row else None

    async def get_cycle_records_for_month(
        self, user_id: str, year: int, month: int
    ) -> list[CycleRecord]:
        """Records dated within the calendar month, oldest first.

        Args:
            month: 1 (January) through 12.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {month}")
        pattern = f"{year:04d}-{month:02d}-%"
        rows = await fetch(
            f"SELECT * FROM {self.TABLE} WHERE user_id = ? AND date LIKE ? ORDER BY date ASC, id ASC",
            user_id,
            pattern,
        )
        return [record_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Upsert by (user, date)
    # ------------------------------------------------------------------

    async def save_for_date(self, entity: CycleRecord) -> CycleRecord:
        """Insert the day's record, or replace the one already stored for that day.

        The stored row keeps its id and ``created_at``.  Overlapping calls
        for the same user are serialized.
        """
        async with self._locks.lock_for(entity.user_id):
            existing = await self.find_by_date(entity.user_id, entity.date)
            if existing is None:
                return await self.save(entity)
            replacement = entity.model_copy(
                update={"created_at": existing.created_at, "updated_at": utc_now()}
            )
            return await self.update(existing.id, replacement)
