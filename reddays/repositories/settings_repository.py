"""Per-user app settings stored as one JSON blob in the key-value store.

Settings are addressed by user, under ``app_settings_<user_id>``.  The
identifier-based lookups of the generic contract have no meaning for this
storage and raise ``UnsupportedOperationError``.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from reddays.errors import InvalidSettingsDataError, SettingsNotFoundError, UnsupportedOperationError
from reddays.models.base import utc_now
from reddays.models.settings import AppSettings, SettingsSnapshot
from reddays.repositories.base import BaseRepository
from reddays.services.kv_store import KeyValueStore
from reddays.stats_config import StatsConfig, get_stats_config

logger = logging.getLogger("reddays.repositories.settings")

SETTINGS_KEY_PREFIX = "app_settings_"
_STORAGE_KIND = "key-value"

# Fields a caller may never overwrite through a partial update
_PROTECTED_FIELDS = {"user_id", "created_at"}


def settings_key(user_id: str) -> str:
    return f"{SETTINGS_KEY_PREFIX}{user_id}"


class SettingsRepository(BaseRepository[AppSettings, int]):
    TABLE = SETTINGS_KEY_PREFIX

    def __init__(self, store: KeyValueStore | None = None, config: StatsConfig | None = None) -> None:
        self._store = store or KeyValueStore()
        self._config = config

    @property
    def export_version(self) -> str:
        return (self._config or get_stats_config()).export_format_version

    # ------------------------------------------------------------------
    # Unsupported for key-value storage
    # ------------------------------------------------------------------

    async def find_by_id(self, id: int) -> AppSettings | None:
        raise UnsupportedOperationError("find_by_id", _STORAGE_KIND)

    async def find_all(self) -> list[AppSettings]:
        raise UnsupportedOperationError("find_all", _STORAGE_KIND)

    async def delete(self, id: int) -> bool:
        raise UnsupportedOperationError("delete", _STORAGE_KIND)

    async def exists(self, id: int) -> bool:
        raise UnsupportedOperationError("exists", _STORAGE_KIND)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, entity: AppSettings) -> AppSettings:
        await self._write(entity)
        return entity

    async def update(self, id: int, entity: AppSettings) -> AppSettings:
        """Merge ``entity`` into the settings of ``entity.user_id``; ``id`` is ignored."""
        return await self.update_settings(
            entity.user_id, entity.model_dump(exclude={"id", "created_at", "updated_at"})
        )

    async def find_by_user_id(self, user_id: str) -> AppSettings | None:
        data = await self._store.get_object(settings_key(user_id))
        if data is None:
            return None
        try:
            return AppSettings.model_validate(data)
        except ValidationError as exc:
            logger.warning("Ignoring invalid stored settings for user %s: %s", user_id, exc)
            return None

    async def update_settings(self, user_id: str, changes: Mapping[str, Any]) -> AppSettings:
        """Merge ``changes`` into the user's settings and refresh ``updated_at``.

        A user without stored settings starts from the defaults.
        """
        patch = {k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS}
        existing = await self.find_by_user_id(user_id)
        now = utc_now()

        if existing is not None:
            base = existing.model_dump()
        else:
            base = AppSettings(user_id=user_id, created_at=now).model_dump()

        merged = AppSettings.model_validate({**base, **patch, "updated_at": now})
        await self._write(merged)
        return merged

    async def reset_to_defaults(self, user_id: str) -> AppSettings:
        defaults = AppSettings(user_id=user_id)
        await self._write(defaults)
        logger.info("Reset settings for user %s", user_id)
        return defaults

    async def export_settings(self, user_id: str) -> dict[str, Any]:
        """Return a version-tagged snapshot of the user's settings.

        Raises:
            SettingsNotFoundError: If the user has no stored settings.
        """
        settings = await self.find_by_user_id(user_id)
        if settings is None:
            raise SettingsNotFoundError(user_id)
        snapshot = SettingsSnapshot(
            version=self.export_version,
            timestamp=utc_now(),
            settings=settings,
        )
        return snapshot.model_dump(mode="json")

    async def import_settings(self, user_id: str, settings_data: Mapping[str, Any]) -> AppSettings:
        """Apply the ``settings`` object of an exported snapshot to ``user_id``.

        Raises:
            InvalidSettingsDataError: If the snapshot carries no settings object.
        """
        if not settings_data or not isinstance(settings_data.get("settings"), Mapping):
            raise InvalidSettingsDataError()
        imported = dict(settings_data["settings"])
        imported.pop("id", None)
        try:
            return await self.update_settings(user_id, imported)
        except ValidationError as exc:
            raise InvalidSettingsDataError(f"Imported settings are invalid: {exc}") from exc

    async def _write(self, settings: AppSettings) -> None:
        await self._store.set_object(settings_key(settings.user_id), settings.model_dump(mode="json"))
