"""API routes for dashboard statistics."""

from fastapi import APIRouter, Depends

from backend.api.dependencies import get_store
from backend.api.schemas import StatsResponse
from backend.store.card_store import CardStore

router = APIRouter(prefix="/api/stats", tags=["stats"])

RECENT_SESSIONS = 10


@router.get("", response_model=StatsResponse)
async def get_stats(store: CardStore = Depends(get_store)) -> StatsResponse:
    """Card totals, today's activity, accuracy and the latest study sessions."""
    stats = store.get_stats()
    sessions = store.study_sessions
    return StatsResponse(
        **stats.model_dump(),
        total_folders=len(store.folders),
        total_sessions=len(sessions),
        recent_sessions=list(sessions[-RECENT_SESSIONS:]),
    )
