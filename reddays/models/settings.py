"""Pydantic models for per-user app settings."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from reddays.models.base import RedDaysBase, TimestampMixin


class Theme(str, Enum):
    light = "light"
    dark = "dark"
    auto = "auto"


class Units(str, Enum):
    metric = "metric"
    imperial = "imperial"


class AppSettings(RedDaysBase, TimestampMixin):
    id: int | None = None
    user_id: str = Field(min_length=1)
    theme: Theme = Theme.auto
    notifications_enabled: bool = True
    reminder_time: str = Field(default="08:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    units: Units = Units.metric
    language: str = "en"
    privacy_mode: bool = False
    data_sync_enabled: bool = False


class SettingsSnapshot(RedDaysBase):
    """Version-tagged export wrapper around a settings object."""

    version: str
    timestamp: datetime
    settings: AppSettings
