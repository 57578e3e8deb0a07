"""Tests for the study session engine."""

import random
from datetime import timedelta

import pytest

from backend.models.records import FlashcardDraft
from backend.store.card_store import CardStore
from backend.store.storage import MemoryKeyValueStorage
from backend.study.session import (
    SessionState,
    SessionStateError,
    StartOutcome,
    StudySessionEngine,
    round_half_up,
)

# --- Helpers ---


def _make_store() -> CardStore:
    return CardStore(MemoryKeyValueStorage(), persist_delay=60.0, write_retries=1)


def _add_cards(store: CardStore, count: int) -> list:
    return [
        store.create_flashcard(FlashcardDraft(front=f"Q{i}", back=f"A{i}", category="math"))
        for i in range(count)
    ]


def _make_engine(store: CardStore, seed: int = 7, archive: bool = True) -> StudySessionEngine:
    return StudySessionEngine(store, rng=random.Random(seed), archive=archive)


# --- Session flow ---


class TestSessionFlow:
    @pytest.mark.asyncio
    async def test_single_card_session(self) -> None:
        store = _make_store()
        card = store.create_flashcard(
            FlashcardDraft(front="2+2", back="4", category="math", difficulty="easy", is_latex=False)
        )
        assert (card.correct_count, card.incorrect_count) == (0, 0)

        engine = _make_engine(store)
        assert engine.start_session([card]) is StartOutcome.STARTED
        engine.answer(True)

        assert engine.state is SessionState.COMPLETE
        assert engine.accuracy() == 100
        assert store.get_flashcard(card.id).correct_count == 1
        assert store.get_flashcard(card.id).last_studied is not None

    @pytest.mark.asyncio
    async def test_empty_deck_stays_idle(self) -> None:
        engine = _make_engine(_make_store())
        assert engine.start_session([]) is StartOutcome.EMPTY_DECK
        assert engine.state is SessionState.IDLE
        assert engine.session is None
        assert engine.current_card is None

    @pytest.mark.asyncio
    async def test_start_initialises_counters(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 3)
        engine = _make_engine(store)
        engine.start_session(cards)

        assert engine.state is SessionState.IN_PROGRESS
        assert engine.position == 0
        assert engine.total_cards == 3
        assert engine.remaining == 3
        assert engine.revealed is False
        assert engine.session.total_cards == 3
        assert engine.session.correct_answers == 0
        assert engine.session.incorrect_answers == 0
        assert engine.session.end_time is None

    @pytest.mark.asyncio
    async def test_n_answers_complete_the_session_once(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 5)
        engine = _make_engine(store)
        engine.start_session(cards)

        states = []
        for i in range(5):
            engine.answer(i % 2 == 0)
            states.append(engine.state)

        assert states.count(SessionState.COMPLETE) == 1
        assert states[-1] is SessionState.COMPLETE
        assert engine.session.correct_answers == 3
        assert engine.session.incorrect_answers == 2
        assert engine.session.end_time is not None
        assert engine.remaining == 0
        assert engine.current_card is None
        assert len(store.study_sessions) == 1
        assert store.study_sessions[0].correct_answers == 3

    @pytest.mark.asyncio
    async def test_visits_every_card_exactly_once(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 12)
        engine = _make_engine(store)
        engine.start_session(cards)

        visited = []
        while engine.state is SessionState.IN_PROGRESS:
            visited.append(engine.current_card.id)
            engine.answer(True)

        assert sorted(visited) == sorted(card.id for card in cards)

    @pytest.mark.asyncio
    async def test_order_comes_from_the_rng(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 10)
        engine = _make_engine(store, seed=3)
        engine.start_session(cards)
        expected = random.Random(3).sample(cards, len(cards))
        assert [c.id for c in engine.deck] == [c.id for c in expected]

    @pytest.mark.asyncio
    async def test_each_start_reshuffles(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 10)
        engine = _make_engine(store, seed=1)
        orders = set()
        for _ in range(5):
            engine.reset_session(cards)
            orders.add(tuple(c.id for c in engine.deck))
        assert len(orders) > 1

    @pytest.mark.asyncio
    async def test_input_deck_is_not_mutated(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 6)
        original = list(cards)
        _make_engine(store).start_session(cards)
        assert cards == original


# --- Flip ---


class TestFlip:
    @pytest.mark.asyncio
    async def test_flip_toggles_without_touching_counters(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 2)
        engine = _make_engine(store)
        engine.start_session(cards)

        assert engine.flip() is True
        assert engine.flip() is False
        assert engine.flip() is True
        assert engine.session.answered == 0
        assert all(c.times_answered == 0 for c in store.flashcards)

    @pytest.mark.asyncio
    async def test_answer_hides_the_next_card(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 2))
        engine.flip()
        engine.answer(False)
        assert engine.revealed is False
        assert engine.position == 1


# --- Misuse ---


class TestMisuse:
    @pytest.mark.asyncio
    async def test_answer_before_start_raises(self) -> None:
        engine = _make_engine(_make_store())
        with pytest.raises(SessionStateError):
            engine.answer(True)

    @pytest.mark.asyncio
    async def test_flip_before_start_raises(self) -> None:
        engine = _make_engine(_make_store())
        with pytest.raises(SessionStateError):
            engine.flip()

    @pytest.mark.asyncio
    async def test_answer_after_complete_raises(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 1))
        engine.answer(True)
        with pytest.raises(SessionStateError):
            engine.answer(True)
        assert engine.session.correct_answers == 1

    @pytest.mark.asyncio
    async def test_start_twice_raises(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 2)
        engine = _make_engine(store)
        engine.start_session(cards)
        with pytest.raises(SessionStateError):
            engine.start_session(cards)

    @pytest.mark.asyncio
    async def test_start_after_complete_requires_reset(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 1)
        engine = _make_engine(store)
        engine.start_session(cards)
        engine.answer(True)
        with pytest.raises(SessionStateError):
            engine.start_session(cards)
        assert engine.reset_session(cards) is StartOutcome.STARTED


# --- Reset ---


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_after_complete_starts_fresh(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 3)
        engine = _make_engine(store)
        engine.start_session(cards)
        for _ in range(3):
            engine.answer(True)
        first = engine.session

        assert engine.reset_session(cards) is StartOutcome.STARTED
        assert engine.state is SessionState.IN_PROGRESS
        assert engine.session is not first
        assert engine.session.answered == 0
        assert engine.position == 0

    @pytest.mark.asyncio
    async def test_reset_mid_session_discards_progress(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 3)
        engine = _make_engine(store)
        engine.start_session(cards)
        engine.answer(True)
        engine.reset_session(cards)
        assert engine.session.correct_answers == 0
        assert engine.remaining == 3
        assert store.study_sessions == ()

    @pytest.mark.asyncio
    async def test_reset_with_empty_deck_returns_to_idle(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 1))
        assert engine.reset_session([]) is StartOutcome.EMPTY_DECK
        assert engine.state is SessionState.IDLE


# --- Card counters ---


class TestCardCounters:
    @pytest.mark.asyncio
    async def test_counts_accumulate_across_sessions(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 2)
        engine = _make_engine(store)
        answers = [True, False, True]
        for correct in answers:
            engine.reset_session(store.flashcards)
            engine.answer(correct)
            engine.answer(correct)

        for card in cards:
            stored = store.get_flashcard(card.id)
            assert stored.correct_count == 2
            assert stored.incorrect_count == 1
            assert stored.times_answered == len(answers)
        assert len(store.study_sessions) == 3

    @pytest.mark.asyncio
    async def test_stale_deck_snapshot_does_not_lose_counts(self) -> None:
        store = _make_store()
        [card] = _add_cards(store, 1)
        store.mark_answer(card.id, True)

        engine = _make_engine(store)
        engine.start_session([card])  # snapshot still shows zero answers
        engine.answer(True)
        assert store.get_flashcard(card.id).correct_count == 2

    @pytest.mark.asyncio
    async def test_card_deleted_mid_session_still_counts(self) -> None:
        store = _make_store()
        cards = _add_cards(store, 2)
        engine = _make_engine(store)
        engine.start_session(cards)
        store.delete_flashcard(engine.current_card.id)

        engine.answer(True)
        engine.answer(False)
        assert engine.state is SessionState.COMPLETE
        assert engine.session.answered == 2
        assert len(store.flashcards) == 1

    @pytest.mark.asyncio
    async def test_current_card_reflects_store_edits(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 1))
        store.update_flashcard(engine.current_card.id, {"back": "edited"})
        assert engine.current_card.back == "edited"

    @pytest.mark.asyncio
    async def test_archive_can_be_disabled(self) -> None:
        store = _make_store()
        engine = _make_engine(store, archive=False)
        engine.start_session(_add_cards(store, 1))
        engine.answer(True)
        assert engine.is_complete
        assert store.study_sessions == ()


# --- Derived statistics ---


class TestDerivedStats:
    def test_round_half_up(self) -> None:
        assert round_half_up(12.5) == 13
        assert round_half_up(12.49) == 12
        assert round_half_up(0.5) == 1

    @pytest.mark.asyncio
    async def test_accuracy_rounds_half_up(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 8))
        engine.answer(True)
        for _ in range(7):
            engine.answer(False)
        assert engine.accuracy() == 13

    @pytest.mark.asyncio
    async def test_accuracy_is_against_the_whole_deck(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 4))
        engine.answer(True)
        assert engine.accuracy() == 25

    def test_accuracy_without_session_is_zero(self) -> None:
        engine = _make_engine(_make_store())
        assert engine.accuracy() == 0
        assert engine.duration_minutes() == 0

    @pytest.mark.asyncio
    async def test_duration_uses_now_while_open(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 2))
        start = engine.session.start_time
        assert engine.duration_minutes(now=start + timedelta(minutes=2, seconds=29)) == 2
        assert engine.duration_minutes(now=start + timedelta(minutes=2, seconds=30)) == 3

    @pytest.mark.asyncio
    async def test_duration_uses_end_time_once_complete(self) -> None:
        store = _make_store()
        engine = _make_engine(store)
        engine.start_session(_add_cards(store, 1))
        engine.session.start_time -= timedelta(minutes=10)
        engine.answer(True)
        later = engine.session.end_time + timedelta(hours=1)
        assert engine.duration_minutes(now=later) == 10
