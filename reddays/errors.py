"""
Exception hierarchy for the RedDays data layer.

Every error carries a machine-readable `code` string so callers can
branch on it without parsing English messages.  Store failures coming
from SQLite are never wrapped; they reach the caller unchanged.
"""
from __future__ import annotations

from typing import Any


class RedDaysError(Exception):
    """Base class for all data-layer errors."""
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UnsupportedOperationError(RedDaysError, NotImplementedError):
    code = "UNSUPPORTED_OPERATION"

    def __init__(self, operation: str, storage_kind: str):
        super().__init__(
            message=f"{operation} is not implemented for {storage_kind}-based repository",
            details={"operation": operation, "storage_kind": storage_kind},
        )


class MalformedPayloadError(RedDaysError, ValueError):
    code = "MALFORMED_PAYLOAD"

    def __init__(self, column: str, raw: str | None = None):
        super().__init__(
            message=f"Could not decode stored {column} payload.",
            details={"column": column, "raw": raw} if raw is not None else {"column": column},
        )


class SettingsNotFoundError(RedDaysError):
    code = "SETTINGS_NOT_FOUND"

    def __init__(self, user_id: str):
        super().__init__(
            message=f"No settings found for user {user_id}",
            details={"user_id": user_id},
        )


class InvalidSettingsDataError(RedDaysError, ValueError):
    code = "INVALID_SETTINGS_DATA"

    def __init__(self, reason: str = "Invalid settings data provided"):
        super().__init__(message=reason)
