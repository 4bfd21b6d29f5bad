"""Pydantic models for tracked cycle days and the per-user cycle history."""

from __future__ import annotations

import datetime as dt

from pydantic import Field

from reddays.models.base import RedDaysBase, TimestampMixin

DEFAULT_AVERAGE_LENGTH = 28


# ---------- Cycle Records ----------

class CycleRecord(RedDaysBase, TimestampMixin):
    """One tracked calendar day for a user.

    ``id`` is assigned by the store on insert.  ``symptoms`` behaves like a
    set of tags but keeps the order it was logged in.
    """

    id: int | None = None
    user_id: str = Field(min_length=1)
    date: dt.date
    cycle_day: int = Field(ge=1)
    symptoms: list[str] = Field(default_factory=list)
    notes: str = ""


# ---------- Cycle History ----------

class CycleHistory(RedDaysBase, TimestampMixin):
    """Denormalized per-user aggregate holding the running list of records."""

    id: int | None = None
    user_id: str = Field(min_length=1)
    cycles: list[CycleRecord] = Field(default_factory=list)
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    average_length: int = DEFAULT_AVERAGE_LENGTH
    next_expected_date: dt.date | None = None


class CycleSummary(RedDaysBase):
    """Aggregate over the raw cycle records of one user."""

    cycle_count: int = 0
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    average_length: float = DEFAULT_AVERAGE_LENGTH
