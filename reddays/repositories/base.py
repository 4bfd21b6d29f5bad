"""Generic CRUD contract shared by every repository.

Domain-specific queries (``find_by_user_id``, ``update_statistics`` …) live
on the concrete repositories; this module only fixes the identifier-based
surface every aggregate exposes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

T = TypeVar("T")
ID = TypeVar("ID")


class BaseRepository(ABC, Generic[T, ID]):
    """Abstract base class for all repositories.

    Subclasses must implement:
        - find_by_id()
        - find_all()
        - save()
        - update()
        - delete()
        - exists()
    """

    #: Name of the backing table (or key prefix for key-value repositories).
    TABLE: str = ""

    @abstractmethod
    async def find_by_id(self, id: ID) -> T | None:
        """Return the entity with this identifier, or None."""

    @abstractmethod
    async def find_all(self) -> list[T]:
        """Return every stored entity."""

    @abstractmethod
    async def save(self, entity: T) -> T:
        """Insert ``entity`` and return it with its store-assigned identifier."""

    @abstractmethod
    async def update(self, id: ID, entity: T) -> T:
        """Replace every column of the row ``id`` with the values of ``entity``."""

    @abstractmethod
    async def delete(self, id: ID) -> bool:
        """Delete the row ``id``.

        Returns:
            True only if a row was actually removed.
        """

    @abstractmethod
    async def exists(self, id: ID) -> bool:
        """Return True if a row with this identifier is stored."""
