"""Key-value storage backends for the flashcard store.

Each key holds one JSON document (``flashcards``, ``folders``, ``categories``,
``study-sessions``). The store only ever reads a whole value or replaces it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.models.storage_entry import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStorage(ABC):
    """Durable string-to-string storage."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key was never written."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``."""


class SqlKeyValueStorage(KeyValueStorage):
    """Storage backed by the ``storage_entries`` table, one row per key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        async with self._session_factory() as db:
            entry = await db.get(StorageEntry, key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as db:
            entry = await db.get(StorageEntry, key)
            if entry is None:
                db.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            await db.commit()
        logger.debug("Wrote %d chars to storage key %r", len(value), key)


class MemoryKeyValueStorage(KeyValueStorage):
    """Process-local storage; keeps a log of every write it receives."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes: list[tuple[str, str]] = []

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self.writes.append((key, value))

    def writes_for(self, key: str) -> list[str]:
        return [value for written_key, value in self.writes if written_key == key]
