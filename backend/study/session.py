"""Study session engine.

Walks a shuffled deck exactly once, records each answer on the card through
the store, and reports accuracy and duration for the pass.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from datetime import datetime
from enum import Enum

from backend.config import utcnow
from backend.models.records import Flashcard, StudySession
from backend.store.card_store import CardStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class StartOutcome(Enum):
    STARTED = "started"
    EMPTY_DECK = "empty_deck"


class SessionStateError(RuntimeError):
    """Raised when the engine is driven from the wrong state."""


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class StudySessionEngine:
    """One-pass review of a deck of flashcards.

    ``IDLE`` -> ``IN_PROGRESS`` on ``start_session``; ``IN_PROGRESS`` ->
    ``COMPLETE`` when the last card is answered. ``reset_session`` begins a
    fresh pass from any state.
    """

    def __init__(
        self,
        store: CardStore,
        rng: random.Random | None = None,
        archive: bool = True,
    ) -> None:
        self.store = store
        self.archive = archive
        self._rng = rng or random.Random()
        self._state = SessionState.IDLE
        self._deck: list[Flashcard] = []
        self._position = 0
        self._revealed = False
        self._session: StudySession | None = None

    # --- State ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return self._state is SessionState.COMPLETE

    @property
    def session(self) -> StudySession | None:
        return self._session

    @property
    def deck(self) -> tuple[Flashcard, ...]:
        return tuple(self._deck)

    @property
    def position(self) -> int:
        return self._position

    @property
    def total_cards(self) -> int:
        return len(self._deck)

    @property
    def remaining(self) -> int:
        return max(0, len(self._deck) - self._position)

    @property
    def revealed(self) -> bool:
        return self._revealed

    @property
    def current_card(self) -> Flashcard | None:
        """The card at the cursor, or None when idle or complete.

        Returns the store's latest copy if the card still exists there.
        """
        if self._state is not SessionState.IN_PROGRESS:
            return None
        card = self._deck[self._position]
        return self.store.get_flashcard(card.id) or card

    # --- Transitions ---

    def start_session(self, cards: Sequence[Flashcard]) -> StartOutcome:
        """Shuffle ``cards`` and begin a pass.

        An empty deck leaves the engine idle and returns ``EMPTY_DECK``.
        """
        if self._state is not SessionState.IDLE:
            raise SessionStateError(
                f"Cannot start a session while {self._state.value}; use reset_session"
            )
        if not cards:
            logger.info("No cards to study")
            return StartOutcome.EMPTY_DECK

        self._deck = self._rng.sample(list(cards), len(cards))
        self._position = 0
        self._revealed = False
        self._session = StudySession(total_cards=len(self._deck), start_time=utcnow())
        self._state = SessionState.IN_PROGRESS
        logger.info("Started study session: %d cards", len(self._deck))
        return StartOutcome.STARTED

    def reset_session(self, cards: Sequence[Flashcard]) -> StartOutcome:
        """Drop the current pass and start a new one with a fresh shuffle."""
        self._state = SessionState.IDLE
        self._deck = []
        self._position = 0
        self._revealed = False
        self._session = None
        return self.start_session(cards)

    def flip(self) -> bool:
        """Toggle whether the answer side is shown; returns the new value."""
        self._require_in_progress("flip")
        self._revealed = not self._revealed
        return self._revealed

    def answer(self, correct: bool) -> Flashcard:
        """Record an answer for the current card and advance.

        Returns the answered card as it was in the deck.
        """
        session = self._require_in_progress("answer")
        card = self._deck[self._position]

        if self.store.mark_answer(card.id, correct) is None:
            logger.debug("Card %s was deleted mid-session; answer not stored", card.id)

        if correct:
            session.correct_answers += 1
        else:
            session.incorrect_answers += 1

        self._position += 1
        self._revealed = False
        if self._position >= len(self._deck):
            self._finish(session)
        return card

    def _finish(self, session: StudySession) -> None:
        session.end_time = utcnow()
        self._state = SessionState.COMPLETE
        if self.archive:
            self.store.save_study_session(session)
        logger.info(
            "Study session complete: %d/%d correct (%d%%)",
            session.correct_answers,
            session.total_cards,
            self.accuracy(),
        )

    def _require_in_progress(self, action: str) -> StudySession:
        if self._state is not SessionState.IN_PROGRESS or self._session is None:
            raise SessionStateError(f"Cannot {action} while session is {self._state.value}")
        return self._session

    # --- Derived statistics ---

    def accuracy(self) -> int:
        """Percentage of the deck answered correctly, rounded half up."""
        if self._session is None or self._session.total_cards == 0:
            return 0
        return round_half_up(self._session.correct_answers / self._session.total_cards * 100)

    def duration_minutes(self, now: datetime | None = None) -> int:
        """Minutes from start to end (or to ``now`` while the pass is open)."""
        if self._session is None:
            return 0
        end = self._session.end_time or now or utcnow()
        return round_half_up((end - self._session.start_time).total_seconds() / 60)
