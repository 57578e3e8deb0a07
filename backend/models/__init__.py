"""Persistent rows (SQLAlchemy) and in-memory records (pydantic)."""

from backend.models.base import Base
from backend.models.records import (
    Difficulty,
    Flashcard,
    FlashcardDraft,
    FlashcardStats,
    Folder,
    StudySession,
)
from backend.models.storage_entry import StorageEntry

__all__ = [
    "Base",
    "Difficulty",
    "Flashcard",
    "FlashcardDraft",
    "FlashcardStats",
    "Folder",
    "StorageEntry",
    "StudySession",
]
