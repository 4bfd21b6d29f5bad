"""Tests for SettingsRepository over the key-value store."""

from __future__ import annotations

import pytest

from reddays.errors import (
    InvalidSettingsDataError,
    SettingsNotFoundError,
    UnsupportedOperationError,
)
from reddays.models.settings import AppSettings, Theme, Units
from reddays.repositories.settings_repository import SettingsRepository, settings_key
from reddays.services.kv_store import KeyValueStore


def test_settings_key_format() -> None:
    assert settings_key("user-7f3a") == "app_settings_user-7f3a"


class TestReadAndWrite:
    async def test_missing_user_returns_none(self, settings_repo: SettingsRepository, user_id: str) -> None:
        assert await settings_repo.find_by_user_id(user_id) is None

    async def test_first_update_starts_from_defaults(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        settings = await settings_repo.update_settings(user_id, {"theme": "dark"})
        assert settings.theme == Theme.dark
        assert settings.notifications_enabled is True
        assert settings.reminder_time == "08:00"
        assert settings.units == Units.metric
        assert settings.language == "en"
        assert settings.created_at == settings.updated_at

        stored = await settings_repo.find_by_user_id(user_id)
        assert stored is not None
        assert stored.theme == Theme.dark

    async def test_update_merges_and_refreshes_timestamp(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        first = await settings_repo.update_settings(user_id, {"theme": "dark"})
        second = await settings_repo.update_settings(user_id, {"units": "imperial", "language": "de"})

        assert second.theme == Theme.dark
        assert second.units == Units.imperial
        assert second.language == "de"
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at

    async def test_owner_cannot_be_changed_by_update(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        settings = await settings_repo.update_settings(user_id, {"user_id": "intruder"})
        assert settings.user_id == user_id
        assert await settings_repo.find_by_user_id("intruder") is None

    async def test_invalid_value_is_rejected(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        with pytest.raises(ValueError):
            await settings_repo.update_settings(user_id, {"reminder_time": "25:00"})
        assert await settings_repo.find_by_user_id(user_id) is None

    async def test_save_then_update_entity(self, settings_repo: SettingsRepository, user_id: str) -> None:
        saved = await settings_repo.save(AppSettings(user_id=user_id, privacy_mode=True))
        updated = await settings_repo.update(0, saved.model_copy(update={"language": "fr"}))
        assert updated.privacy_mode is True
        assert updated.language == "fr"

    async def test_unreadable_blob_reads_as_missing(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        await KeyValueStore().set_item(settings_key(user_id), "{not json")
        assert await settings_repo.find_by_user_id(user_id) is None

    async def test_reset_to_defaults(self, settings_repo: SettingsRepository, user_id: str) -> None:
        await settings_repo.update_settings(user_id, {"theme": "light", "privacy_mode": True})
        reset = await settings_repo.reset_to_defaults(user_id)
        assert reset.theme == Theme.auto
        assert reset.privacy_mode is False

        stored = await settings_repo.find_by_user_id(user_id)
        assert stored is not None
        assert stored.theme == Theme.auto


class TestExportImport:
    async def test_export_wraps_settings_with_version(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        await settings_repo.update_settings(user_id, {"theme": "dark"})
        exported = await settings_repo.export_settings(user_id)

        assert exported["version"] == "1.0"
        assert "timestamp" in exported
        assert exported["settings"]["theme"] == "dark"
        assert exported["settings"]["user_id"] == user_id

    async def test_export_without_settings_raises(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        with pytest.raises(SettingsNotFoundError) as excinfo:
            await settings_repo.export_settings(user_id)
        assert excinfo.value.code == "SETTINGS_NOT_FOUND"

    async def test_import_into_another_user(
        self, settings_repo: SettingsRepository, user_id: str
    ) -> None:
        await settings_repo.update_settings(user_id, {"theme": "dark", "reminder_time": "21:30"})
        exported = await settings_repo.export_settings(user_id)

        imported = await settings_repo.import_settings("user-b2c9", exported)
        assert imported.user_id == "user-b2c9"
        assert imported.theme == Theme.dark
        assert imported.reminder_time == "21:30"

        original = await settings_repo.find_by_user_id(user_id)
        assert original is not None
        assert original.user_id == user_id

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"version": "1.0"},
            {"settings": "dark"},
            {"settings": {"reminder_time": "8 o'clock"}},
        ],
    )
    async def test_invalid_import_raises(
        self, settings_repo: SettingsRepository, user_id: str, payload: dict
    ) -> None:
        with pytest.raises(InvalidSettingsDataError):
            await settings_repo.import_settings(user_id, payload)


class TestUnsupportedOperations:
    @pytest.mark.parametrize("operation", ["find_by_id", "delete", "exists"])
    async def test_id_based_operations_raise(
        self, settings_repo: SettingsRepository, operation: str
    ) -> None:
        with pytest.raises(UnsupportedOperationError) as excinfo:
            await getattr(settings_repo, operation)(1)
        assert excinfo.value.code == "UNSUPPORTED_OPERATION"
        assert "key-value-based repository" in str(excinfo.value)

    async def test_find_all_raises_not_implemented(self, settings_repo: SettingsRepository) -> None:
        with pytest.raises(NotImplementedError):
            await settings_repo.find_all()
