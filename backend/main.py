"""FastAPI application entry point and configuration."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from backend.api.cards_router import router as cards_router
from backend.api.folders_router import router as folders_router
from backend.api.session_router import router as session_router
from backend.api.stats_router import router as stats_router
from backend.config import settings
from backend.database import async_session, engine, init_db
from backend.store.card_store import CardStore
from backend.store.storage import SqlKeyValueStorage

logger = logging.getLogger(__name__)


def _report_load_failure(task: asyncio.Task[None]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Card store failed to load", exc_info=task.exception())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables and start loading the store; flush writes on shutdown."""
    await init_db()
    store = CardStore(SqlKeyValueStorage(async_session))
    app.state.store = store
    load_task = asyncio.create_task(store.load())
    load_task.add_done_callback(_report_load_failure)
    yield
    try:
        await asyncio.wait([load_task])
    finally:
        await store.flush()
        await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Personal flashcard study tool",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cards_router)
app.include_router(folders_router)
app.include_router(session_router)
app.include_router(stats_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Check database connectivity and return status."""
    async with async_session() as session:
        await session.execute(text("SELECT 1"))
    return {"status": "ok"}
