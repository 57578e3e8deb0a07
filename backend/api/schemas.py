"""Pydantic schemas for API request/response models.

Flashcard, Folder and StudySession records are returned as-is (camelCase, the
same shape as storage); the models here cover requests and composite replies.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.models.records import Difficulty, Flashcard, FlashcardStats, StudySession


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Cards, folders, categories ---


class FlashcardUpdateRequest(CamelModel):
    """Partial card update; only fields present in the request are applied."""

    front: str | None = None
    back: str | None = None
    category: str | None = None
    difficulty: Difficulty | None = None
    is_latex: bool | None = None
    folder_id: str | None = None


class MoveCardRequest(CamelModel):
    folder_id: str | None = None  # None moves the card to unfiled


class FolderCreateRequest(CamelModel):
    name: str
    color: str | None = None


class FolderUpdateRequest(CamelModel):
    name: str | None = None
    color: str | None = None


class CategoryCreateRequest(CamelModel):
    name: str


class StatsResponse(FlashcardStats):
    """Dashboard figures plus folder count and recent sessions."""

    total_folders: int
    total_sessions: int
    recent_sessions: list[StudySession]


# --- Session ---


class SessionStartRequest(CamelModel):
    """Optional deck filter; omit everything to study all cards."""

    folder_id: str | None = None
    category: str | None = None
    unfiled: bool = False


class SessionStartResponse(CamelModel):
    session_id: str
    total_cards: int


class SessionCardResponse(CamelModel):
    """Where the session is and which card is showing."""

    session_id: str
    state: str
    position: int
    total_cards: int
    remaining: int
    revealed: bool
    card: Flashcard | None = None


class AnswerRequest(CamelModel):
    correct: bool


class AnswerResponse(CamelModel):
    card_id: str
    correct: bool
    remaining: int
    session_complete: bool
    accuracy: int


class SessionStatsResponse(CamelModel):
    state: str
    total_cards: int
    correct_answers: int
    incorrect_answers: int
    accuracy: int
    duration_minutes: int
