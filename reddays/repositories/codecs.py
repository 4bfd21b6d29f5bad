"""Conversions between in-memory values and their stored text form.

Dates are stored as ``YYYY-MM-DD``; timestamps as ISO-8601; symptom lists
and frequency maps as JSON.
"""

from __future__ import annotations

import json
from datetime import date, datetime

from reddays.errors import MalformedPayloadError


def format_date(value: date | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def encode_symptoms(symptoms: list[str]) -> str:
    return json.dumps(list(symptoms))


def decode_symptoms(raw: str | None) -> list[str]:
    """Decode a stored symptom list.

    Raises:
        MalformedPayloadError: If ``raw`` is not a JSON array.
    """
    if raw is None:
        raise MalformedPayloadError("symptoms")
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise MalformedPayloadError("symptoms", raw) from exc
    if not isinstance(value, list):
        raise MalformedPayloadError("symptoms", raw)
    # Non-string tags keep their JSON spelling: null -> "null", true -> "true"
    return [tag if isinstance(tag, str) else json.dumps(tag) for tag in value]


def encode_json(value: object) -> str:
    return json.dumps(value, default=str)


def decode_json_object(raw: str | None, column: str) -> dict:
    """Decode a stored JSON object; NULL reads back as an empty dict."""
    if raw is None or raw == "":
        return {}
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise MalformedPayloadError(column, raw) from exc
    if not isinstance(value, dict):
        raise MalformedPayloadError(column, raw)
    return value


def decode_json_list(raw: str | None, column: str) -> list:
    if raw is None or raw == "":
        return []
    try:
        value = json.loads(raw)
    except ValueError as exc:
        raise MalformedPayloadError(column, raw) from exc
    if not isinstance(value, list):
        raise MalformedPayloadError(column, raw)
    return value
