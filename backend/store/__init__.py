"""Flashcard persistence: storage backends, write coalescing and the store."""

from backend.store.card_store import (
    CATEGORIES_KEY,
    FLASHCARDS_KEY,
    FOLDERS_KEY,
    SESSIONS_KEY,
    UNFILED,
    CardStore,
    iter_batches,
)
from backend.store.storage import KeyValueStorage, MemoryKeyValueStorage, SqlKeyValueStorage
from backend.store.write_scheduler import WriteScheduler

__all__ = [
    "CATEGORIES_KEY",
    "FLASHCARDS_KEY",
    "FOLDERS_KEY",
    "SESSIONS_KEY",
    "UNFILED",
    "CardStore",
    "KeyValueStorage",
    "MemoryKeyValueStorage",
    "SqlKeyValueStorage",
    "WriteScheduler",
    "iter_batches",
]
