"""Key-value row backing the durable flashcard storage."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin


class StorageEntry(Base, TimestampMixin):
    """One storage key (``flashcards``, ``folders``, ...) and its JSON payload."""

    __tablename__ = "storage_entries"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
