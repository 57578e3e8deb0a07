"""API routes for folders and categories."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from backend.api.dependencies import get_store
from backend.api.schemas import CategoryCreateRequest, FolderCreateRequest, FolderUpdateRequest
from backend.models.records import Folder
from backend.store.card_store import CardStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["folders"])


@router.get("/api/folders", response_model=list[Folder])
async def list_folders(store: CardStore = Depends(get_store)) -> list[Folder]:
    return list(store.folders)


@router.post("/api/folders", response_model=Folder, status_code=201)
async def create_folder(
    request: FolderCreateRequest,
    store: CardStore = Depends(get_store),
) -> Folder:
    folder_id = store.create_folder(request.name, request.color)
    folder = store.get_folder(folder_id) if folder_id else None
    if folder is None:
        raise HTTPException(status_code=422, detail="Folder name must not be empty")
    return folder


@router.patch("/api/folders/{folder_id}", response_model=Folder)
async def update_folder(
    folder_id: str,
    request: FolderUpdateRequest,
    store: CardStore = Depends(get_store),
) -> Folder:
    if store.get_folder(folder_id) is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    folder = store.update_folder(folder_id, request.model_dump(exclude_unset=True))
    if folder is None:
        raise HTTPException(status_code=422, detail="Folder name must not be empty")
    return folder


@router.delete("/api/folders/{folder_id}", status_code=204)
async def delete_folder(folder_id: str, store: CardStore = Depends(get_store)) -> Response:
    """Delete a folder; its cards become unfiled."""
    if not store.delete_folder(folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
    return Response(status_code=204)


@router.get("/api/categories", response_model=list[str])
async def list_categories(store: CardStore = Depends(get_store)) -> list[str]:
    return list(store.categories)


@router.post("/api/categories", response_model=list[str], status_code=201)
async def create_category(
    request: CategoryCreateRequest,
    store: CardStore = Depends(get_store),
) -> list[str]:
    if store.create_category(request.name) is None:
        raise HTTPException(status_code=422, detail="Category name must not be empty")
    return list(store.categories)


@router.delete("/api/categories/{name}", status_code=204)
async def delete_category(name: str, store: CardStore = Depends(get_store)) -> Response:
    """Delete a category; its cards move to the fallback category."""
    if not store.delete_category(name):
        raise HTTPException(status_code=404, detail="Category not found or protected")
    return Response(status_code=204)
