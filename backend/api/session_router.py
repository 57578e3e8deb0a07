"""API routes for study sessions."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException

from backend.api.dependencies import get_store
from backend.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    SessionCardResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionStatsResponse,
)
from backend.models.records import Flashcard
from backend.store.card_store import UNFILED, CardStore
from backend.study.session import SessionStateError, StartOutcome, StudySessionEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# In-memory session registry; sessions are ephemeral and die with the process.
_active_sessions: dict[str, StudySessionEngine] = {}


def _get_engine(session_id: str) -> StudySessionEngine:
    engine = _active_sessions.get(session_id)
    if engine is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return engine


def _card_response(session_id: str, engine: StudySessionEngine) -> SessionCardResponse:
    return SessionCardResponse(
        session_id=session_id,
        state=engine.state.value,
        position=engine.position,
        total_cards=engine.total_cards,
        remaining=engine.remaining,
        revealed=engine.revealed,
        card=engine.current_card,
    )


def _select_deck(store: CardStore, request: SessionStartRequest) -> list[Flashcard]:
    folder = UNFILED if request.unfiled else request.folder_id
    return store.filter_flashcards(category=request.category, folder=folder)


@router.post("/start", response_model=SessionStartResponse)
async def session_start(
    request: SessionStartRequest | None = None,
    store: CardStore = Depends(get_store),
) -> SessionStartResponse:
    """Shuffle the selected cards and start a one-pass study session."""
    engine = StudySessionEngine(store)
    outcome = engine.start_session(_select_deck(store, request or SessionStartRequest()))
    if outcome is StartOutcome.EMPTY_DECK:
        raise HTTPException(status_code=404, detail="No cards available")

    session_id = str(uuid.uuid4())
    _active_sessions[session_id] = engine
    return SessionStartResponse(session_id=session_id, total_cards=engine.total_cards)


@router.get("/{session_id}", response_model=SessionCardResponse)
async def session_current(session_id: str) -> SessionCardResponse:
    return _card_response(session_id, _get_engine(session_id))


@router.post("/{session_id}/flip", response_model=SessionCardResponse)
async def session_flip(session_id: str) -> SessionCardResponse:
    engine = _get_engine(session_id)
    try:
        engine.flip()
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return _card_response(session_id, engine)


@router.post("/{session_id}/answer", response_model=AnswerResponse)
async def session_answer(session_id: str, request: AnswerRequest) -> AnswerResponse:
    """Record whether the current card was answered correctly."""
    engine = _get_engine(session_id)
    try:
        card = engine.answer(request.correct)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return AnswerResponse(
        card_id=card.id,
        correct=request.correct,
        remaining=engine.remaining,
        session_complete=engine.is_complete,
        accuracy=engine.accuracy(),
    )


@router.post("/{session_id}/reset", response_model=SessionCardResponse)
async def session_reset(
    session_id: str,
    request: SessionStartRequest | None = None,
    store: CardStore = Depends(get_store),
) -> SessionCardResponse:
    """Start the session over with a fresh shuffle of the selected cards."""
    engine = _get_engine(session_id)
    outcome = engine.reset_session(_select_deck(store, request or SessionStartRequest()))
    if outcome is StartOutcome.EMPTY_DECK:
        _active_sessions.pop(session_id, None)
        raise HTTPException(status_code=404, detail="No cards available")
    return _card_response(session_id, engine)


@router.get("/{session_id}/stats", response_model=SessionStatsResponse)
async def session_stats(session_id: str) -> SessionStatsResponse:
    engine = _get_engine(session_id)
    session = engine.session
    return SessionStatsResponse(
        state=engine.state.value,
        total_cards=engine.total_cards,
        correct_answers=session.correct_answers if session else 0,
        incorrect_answers=session.incorrect_answers if session else 0,
        accuracy=engine.accuracy(),
        duration_minutes=engine.duration_minutes(),
    )


@router.post("/{session_id}/end")
async def session_end(session_id: str) -> dict:
    """Forget a session."""
    engine = _active_sessions.pop(session_id, None)
    if engine is None:
        raise HTTPException(status_code=404, detail="Session not found")
    logger.info("Ended study session %s (%s)", session_id, engine.state.value)
    return {"status": "ended", "state": engine.state.value}
