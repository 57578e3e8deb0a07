"""In-memory flashcard records and their JSON storage shape.

Python attributes are snake_case; the persisted JSON uses camelCase keys
(``isLatex``, ``folderId``, ``createdAt`` ...) and ISO-8601 timestamps.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from backend.config import settings, utcnow


def _as_naive_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


NaiveUTCDateTime = Annotated[datetime, AfterValidator(_as_naive_utc)]


def new_id() -> str:
    return uuid.uuid4().hex


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class StoredRecord(BaseModel):
    """Base for records that round-trip through the key-value storage."""

    # Older exports used numeric ids, so numbers are accepted and kept as strings.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_storage(self) -> dict[str, Any]:
        """Return the JSON-ready dict written to storage (unset optionals omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FlashcardDraft(StoredRecord):
    """Fields a caller supplies to create a flashcard."""

    front: str
    back: str
    category: str = settings.fallback_category
    difficulty: Difficulty = Difficulty.MEDIUM
    is_latex: bool = False
    folder_id: str | None = None


class Flashcard(StoredRecord):
    """A question/answer card with its answer history."""

    id: str = Field(default_factory=new_id)
    front: str
    back: str
    category: str = settings.fallback_category
    difficulty: Difficulty = Difficulty.MEDIUM
    is_latex: bool = False
    folder_id: str | None = None
    created_at: NaiveUTCDateTime = Field(default_factory=utcnow)
    last_studied: NaiveUTCDateTime | None = None
    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)

    @property
    def times_answered(self) -> int:
        return self.correct_count + self.incorrect_count


class Folder(StoredRecord):
    """A named, coloured group of flashcards.

    ``card_count`` is derived by the store from the flashcard collection.
    """

    id: str = Field(default_factory=new_id)
    name: str
    color: str = "#3B82F6"
    created_at: NaiveUTCDateTime = Field(default_factory=utcnow)
    card_count: int = Field(default=0, ge=0)


class StudySession(StoredRecord):
    """Counters for one pass over a shuffled deck."""

    total_cards: int = Field(ge=0)
    correct_answers: int = Field(default=0, ge=0)
    incorrect_answers: int = Field(default=0, ge=0)
    start_time: NaiveUTCDateTime = Field(default_factory=utcnow)
    end_time: NaiveUTCDateTime | None = None

    @property
    def answered(self) -> int:
        return self.correct_answers + self.incorrect_answers


class FlashcardStats(BaseModel):
    """Aggregate figures for the dashboard."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_cards: int
    studied_today: int
    average_accuracy: float
    category_breakdown: dict[str, int]
