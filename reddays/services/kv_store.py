"""String-keyed key-value store backed by a table in the local SQLite file.

Values are opaque strings; ``get_object`` / ``set_object`` layer JSON on top.
Write failures are logged and re-raised.  A value that is not valid JSON
reads back as ``None`` from ``get_object`` instead of failing the caller.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

import aiosqlite

from reddays.services.database import execute, fetch, fetchval, transaction

logger = logging.getLogger("reddays.kv")

_UPSERT = """
    INSERT INTO key_value_store (key, value) VALUES (?, ?)
    ON CONFLICT (key) DO UPDATE SET value = excluded.value
"""


def _deep_merge(base: dict, patch: dict) -> dict:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class KeyValueStore:
    """Async get/set/remove/clear over string keys."""

    async def get_item(self, key: str) -> str | None:
        return await fetchval("SELECT value FROM key_value_store WHERE key = ?", key)

    async def set_item(self, key: str, value: str) -> None:
        await execute(_UPSERT, key, value)

    async def remove_item(self, key: str) -> None:
        await execute("DELETE FROM key_value_store WHERE key = ?", key)

    async def clear(self) -> None:
        await execute("DELETE FROM key_value_store")
        logger.info("Key-value store cleared")

    async def get_all_keys(self) -> list[str]:
        rows = await fetch("SELECT key FROM key_value_store ORDER BY key")
        return [r["key"] for r in rows]

    async def multi_get(self, keys: Iterable[str]) -> list[tuple[str, str | None]]:
        """Return ``(key, value)`` pairs in the order requested."""
        keys = list(keys)
        if not keys:
            return []
        placeholders = ", ".join("?" for _ in keys)
        rows = await fetch(
            f"SELECT key, value FROM key_value_store WHERE key IN ({placeholders})",
            *keys,
        )
        found = {r["key"]: r["value"] for r in rows}
        return [(k, found.get(k)) for k in keys]

    async def multi_set(self, pairs: Iterable[tuple[str, str]]) -> None:
        pairs = list(pairs)
        try:
            async with transaction() as conn:
                await conn.executemany(_UPSERT, pairs)
        except aiosqlite.Error as exc:
            logger.error("multi_set of %d keys failed: %s", len(pairs), exc)
            raise

    async def merge_item(self, key: str, value: str) -> None:
        """Deep-merge a JSON object into the object stored under ``key``.

        A missing key, or a stored value that is not a JSON object, is
        replaced outright.
        """
        patch = json.loads(value)
        async with transaction() as conn:
            async with conn.execute(
                "SELECT value FROM key_value_store WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
            current = _loads_or_none(row[0]) if row else None
            if isinstance(current, dict) and isinstance(patch, dict):
                merged = _deep_merge(current, patch)
            else:
                merged = patch
            await conn.execute(_UPSERT, (key, json.dumps(merged)))

    async def get_object(self, key: str) -> Any | None:
        raw = await self.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed JSON stored under key %r", key)
            return None

    async def set_object(self, key: str, value: Any) -> None:
        await self.set_item(key, json.dumps(value, default=str))


def _loads_or_none(raw: str) -> Any | None:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None
