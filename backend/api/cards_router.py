"""API routes for flashcards."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from backend.api.dependencies import get_store
from backend.api.schemas import FlashcardUpdateRequest, MoveCardRequest
from backend.models.records import Flashcard, FlashcardDraft
from backend.store.card_store import CardStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cards", tags=["cards"])


@router.get("", response_model=list[Flashcard])
async def list_cards(
    category: str | None = None,
    folder: str | None = None,
    store: CardStore = Depends(get_store),
) -> list[Flashcard]:
    """List cards, optionally filtered by category and folder id (or ``unfiled``)."""
    return store.filter_flashcards(category=category, folder=folder)


@router.post("", response_model=Flashcard, status_code=201)
async def create_card(
    draft: FlashcardDraft,
    store: CardStore = Depends(get_store),
) -> Flashcard:
    card = store.create_flashcard(draft)
    if card is None:
        raise HTTPException(status_code=422, detail="Front and back must not be empty")
    return card


@router.get("/{card_id}", response_model=Flashcard)
async def get_card(card_id: str, store: CardStore = Depends(get_store)) -> Flashcard:
    card = store.get_flashcard(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


@router.patch("/{card_id}", response_model=Flashcard)
async def update_card(
    card_id: str,
    request: FlashcardUpdateRequest,
    store: CardStore = Depends(get_store),
) -> Flashcard:
    """Apply the fields present in the request body to a card.

    ``folderId: null`` unfiles the card; null for any other field is ignored.
    """
    changes = {
        name: value
        for name, value in request.model_dump(exclude_unset=True).items()
        if value is not None or name == "folder_id"
    }
    card = store.update_flashcard(card_id, changes)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


@router.put("/{card_id}/folder", response_model=Flashcard)
async def move_card(
    card_id: str,
    request: MoveCardRequest,
    store: CardStore = Depends(get_store),
) -> Flashcard:
    card = store.move_card_to_folder(card_id, request.folder_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


@router.delete("/{card_id}", status_code=204)
async def delete_card(card_id: str, store: CardStore = Depends(get_store)) -> Response:
    if not store.delete_flashcard(card_id):
        raise HTTPException(status_code=404, detail="Card not found")
    return Response(status_code=204)
