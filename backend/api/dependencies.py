"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from backend.store.card_store import CardStore


def get_store(request: Request) -> CardStore:
    """Return the application's single CardStore (set up in the lifespan)."""
    return request.app.state.store
