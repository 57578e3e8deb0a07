"""The flashcard store: single owner of cards, folders, categories and history.

Every mutation is applied to memory synchronously and then handed to the
``WriteScheduler``, which persists the affected storage keys once the store
has been quiet for ``persist_delay_seconds``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import Counter
from collections.abc import Iterator, Mapping, Sequence
from functools import partial
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from backend.config import local_midnight, settings, utcnow
from backend.models.records import (
    Flashcard,
    FlashcardDraft,
    FlashcardStats,
    Folder,
    StudySession,
)
from backend.store.storage import KeyValueStorage
from backend.store.write_scheduler import WriteScheduler

logger = logging.getLogger(__name__)

FLASHCARDS_KEY = "flashcards"
FOLDERS_KEY = "folders"
CATEGORIES_KEY = "categories"
SESSIONS_KEY = "study-sessions"
ALL_KEYS = (FLASHCARDS_KEY, FOLDERS_KEY, CATEGORIES_KEY, SESSIONS_KEY)

# Folder filter value selecting cards that are in no folder.
UNFILED = "unfiled"

_CARD_READONLY_FIELDS = frozenset({"id", "created_at"})
_FOLDER_READONLY_FIELDS = frozenset({"id", "created_at", "card_count"})

T = TypeVar("T")
R = TypeVar("R", bound=BaseModel)


def iter_batches(records: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` records."""
    for start in range(0, len(records), size):
        yield records[start : start + size]


class CardStore:
    """Source of truth for flashcards, folders, categories and study history."""

    def __init__(
        self,
        storage: KeyValueStorage,
        persist_delay: float | None = None,
        load_batch_size: int | None = None,
        write_retries: int | None = None,
    ) -> None:
        self._storage = storage
        self._writer = WriteScheduler(
            storage,
            delay=settings.persist_delay_seconds if persist_delay is None else persist_delay,
            retries=settings.storage_write_retries if write_retries is None else write_retries,
        )
        self.load_batch_size = max(1, load_batch_size or settings.load_batch_size)
        self.fallback_category = settings.fallback_category

        self._flashcards: list[Flashcard] = []
        self._folders: list[Folder] = []
        self._categories: list[str] = list(settings.default_categories)
        self._sessions: list[StudySession] = []

        self._loading = False
        self._loaded = False
        # Keys mutated mid-load; written once the load settles.
        self._dirty_keys: set[str] = set()
        # Keys whose stored value could not be read. Never overwritten.
        self._unreadable_keys: set[str] = set()
        # Deletions issued mid-load, re-applied to records loaded afterwards.
        self._deleted_folders: set[str] = set()
        self._deleted_categories: set[str] = set()

    # --- Read accessors ---

    @property
    def flashcards(self) -> tuple[Flashcard, ...]:
        return tuple(self._flashcards)

    @property
    def folders(self) -> tuple[Folder, ...]:
        return tuple(self._folders)

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(self._categories)

    @property
    def study_sessions(self) -> tuple[StudySession, ...]:
        return tuple(self._sessions)

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def pending_writes(self) -> list[str]:
        return self._writer.pending_keys

    @property
    def unreadable_keys(self) -> list[str]:
        """Storage keys that failed to load and are protected from writes."""
        return sorted(self._unreadable_keys)

    def get_flashcard(self, card_id: str) -> Flashcard | None:
        index = self._card_index(card_id)
        return self._flashcards[index] if index is not None else None

    def get_folder(self, folder_id: str) -> Folder | None:
        index = self._folder_index(folder_id)
        return self._folders[index] if index is not None else None

    def filter_flashcards(
        self,
        category: str | None = None,
        folder: str | None = None,
    ) -> list[Flashcard]:
        """Return cards matching a category and a folder id (or ``UNFILED``).

        ``None`` for either argument means "any".
        """
        cards = []
        for card in self._flashcards:
            if category is not None and card.category != category:
                continue
            if folder == UNFILED and card.folder_id is not None:
                continue
            if folder not in (None, UNFILED) and card.folder_id != folder:
                continue
            cards.append(card)
        return cards

    def get_stats(self) -> FlashcardStats:
        """Totals, cards studied since local midnight, accuracy and category counts."""
        start_of_day = local_midnight()
        studied_today = sum(
            1
            for card in self._flashcards
            if card.last_studied is not None and card.last_studied >= start_of_day
        )
        attempts = sum(card.times_answered for card in self._flashcards)
        correct = sum(card.correct_count for card in self._flashcards)
        return FlashcardStats(
            total_cards=len(self._flashcards),
            studied_today=studied_today,
            average_accuracy=correct / attempts * 100 if attempts else 0.0,
            category_breakdown=dict(Counter(card.category for card in self._flashcards)),
        )

    # --- Loading ---

    async def load(self) -> None:
        """Load persisted state, appending flashcards batch by batch.

        Folders, categories and study history are small and read in one go.
        Flashcards become visible ``load_batch_size`` at a time with a yield
        to the event loop between batches.

        A key whose read raises is logged and treated as empty, and the store
        never writes that key afterwards so the stored value survives.
        """
        self._loading = True
        try:
            folders = await self._read_records(FOLDERS_KEY, Folder)
            categories = await self._read_categories()
            sessions = await self._read_records(SESSIONS_KEY, StudySession)
            raw_cards = await self._read_list(FLASHCARDS_KEY) or []

            if folders is not None:
                folders = [f for f in folders if f.id not in self._deleted_folders]
                known = {folder.id for folder in folders}
                self._folders = folders + [f for f in self._folders if f.id not in known]
            if categories is not None:
                categories = [c for c in categories if c not in self._deleted_categories]
                added = [c for c in self._categories if c not in settings.default_categories]
                self._categories = categories + [c for c in added if c not in categories]
            if sessions is not None:
                self._sessions = sessions + self._sessions

            for batch in iter_batches(raw_cards, self.load_batch_size):
                parsed = self._parse(batch, Flashcard, FLASHCARDS_KEY)
                cards = [self._apply_load_cascades(card) for card in parsed]
                self._flashcards.extend(cards)
                await asyncio.sleep(0)
        except BaseException:
            # Memory may hold a partial collection; keep every key as stored.
            self._unreadable_keys.update(ALL_KEYS)
            raise
        finally:
            self._loading = False
            self._deleted_folders.clear()
            self._deleted_categories.clear()

        self._loaded = True
        self.recompute_folder_counts()
        for key in sorted(self._dirty_keys):
            self._schedule(key)
        self._dirty_keys.clear()
        logger.info(
            "Loaded %d flashcards, %d folders, %d categories, %d sessions",
            len(self._flashcards),
            len(self._folders),
            len(self._categories),
            len(self._sessions),
        )

    async def flush(self) -> None:
        """Persist all pending changes immediately."""
        await self._writer.flush()

    async def _read_list(self, key: str) -> list[Any] | None:
        try:
            raw = await self._storage.get(key)
        except Exception:
            logger.exception("Could not read storage key %r; keeping it unmodified", key)
            self._unreadable_keys.add(key)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Storage key %r holds unparseable JSON; using defaults", key)
            return None
        if not isinstance(data, list):
            logger.warning("Storage key %r is not a JSON array; using defaults", key)
            return None
        return data

    async def _read_records(self, key: str, model: type[R]) -> list[R] | None:
        data = await self._read_list(key)
        return self._parse(data, model, key) if data is not None else None

    async def _read_categories(self) -> list[str] | None:
        data = await self._read_list(CATEGORIES_KEY)
        if data is None:
            return None
        categories: list[str] = []
        for label in data:
            if isinstance(label, str) and label.strip() and label not in categories:
                categories.append(label)
        return categories

    def _parse(self, data: Sequence[Any], model: type[R], key: str) -> list[R]:
        records = []
        for raw in data:
            try:
                records.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping invalid record in %r: %s", key, e.errors()[:1])
        return records

    def _apply_load_cascades(self, card: Flashcard) -> Flashcard:
        updates: dict[str, Any] = {}
        if card.folder_id is not None and card.folder_id in self._deleted_folders:
            updates["folder_id"] = None
        if card.category in self._deleted_categories:
            updates["category"] = self.fallback_category
        if not updates:
            return card
        self._dirty_keys.add(FLASHCARDS_KEY)
        return card.model_copy(update=updates)

    # --- Flashcards ---

    def create_flashcard(self, draft: FlashcardDraft | Mapping[str, Any]) -> Flashcard | None:
        """Add a card built from ``draft``; returns None if front or back is blank."""
        if not isinstance(draft, FlashcardDraft):
            draft = FlashcardDraft.model_validate(draft)
        front, back = draft.front.strip(), draft.back.strip()
        if not front or not back:
            logger.debug("Ignoring flashcard draft with an empty side")
            return None

        card = Flashcard(**{**draft.model_dump(), "front": front, "back": back})
        self._flashcards.append(card)
        self._flashcards_changed()
        return card

    def update_flashcard(self, card_id: str, updates: Mapping[str, Any]) -> Flashcard | None:
        """Merge ``updates`` into a card. ``id`` and ``created_at`` are never changed."""
        index = self._card_index(card_id)
        if index is None:
            logger.debug("update_flashcard: no card %s", card_id)
            return None
        changes = _writable(updates, Flashcard, _CARD_READONLY_FIELDS)
        card = Flashcard.model_validate({**self._flashcards[index].model_dump(), **changes})
        self._flashcards[index] = card
        self._flashcards_changed()
        return card

    def delete_flashcard(self, card_id: str) -> bool:
        index = self._card_index(card_id)
        if index is None:
            logger.debug("delete_flashcard: no card %s", card_id)
            return False
        del self._flashcards[index]
        self._flashcards_changed()
        return True

    def mark_answer(self, card_id: str, correct: bool) -> Flashcard | None:
        """Record one answer: stamp ``last_studied`` and bump one counter."""
        card = self.get_flashcard(card_id)
        if card is None:
            return None
        updates: dict[str, Any] = {"last_studied": utcnow()}
        if correct:
            updates["correct_count"] = card.correct_count + 1
        else:
            updates["incorrect_count"] = card.incorrect_count + 1
        return self.update_flashcard(card_id, updates)

    def move_card_to_folder(self, card_id: str, folder_id: str | None) -> Flashcard | None:
        """Put a card in ``folder_id`` (None = unfiled). The folder is not checked."""
        return self.update_flashcard(card_id, {"folder_id": folder_id})

    # --- Folders ---

    def create_folder(self, name: str, color: str | None = None) -> str | None:
        """Add a folder and return its id, or None if ``name`` is blank."""
        name = name.strip()
        if not name:
            logger.debug("Ignoring folder with an empty name")
            return None
        folder = Folder(name=name) if color is None else Folder(name=name, color=color)
        self._folders.append(folder)
        self._schedule(FOLDERS_KEY)
        return folder.id

    def update_folder(self, folder_id: str, updates: Mapping[str, Any]) -> Folder | None:
        index = self._folder_index(folder_id)
        if index is None:
            return None
        changes = _writable(updates, Folder, _FOLDER_READONLY_FIELDS)
        if "name" in changes:
            changes["name"] = str(changes["name"]).strip()
            if not changes["name"]:
                return None
        folder = Folder.model_validate({**self._folders[index].model_dump(), **changes})
        self._folders[index] = folder
        self._schedule(FOLDERS_KEY)
        return folder

    def delete_folder(self, folder_id: str) -> bool:
        """Remove a folder, moving its cards to unfiled in the same step."""
        if self._folder_index(folder_id) is None:
            return False
        cards = [
            card.model_copy(update={"folder_id": None}) if card.folder_id == folder_id else card
            for card in self._flashcards
        ]
        folders = [folder for folder in self._folders if folder.id != folder_id]
        self._flashcards, self._folders = cards, folders
        if self._loading:
            self._deleted_folders.add(folder_id)
        self._schedule(FOLDERS_KEY)
        self._flashcards_changed()
        return True

    def recompute_folder_counts(self) -> bool:
        """Derive each folder's ``card_count``; returns True if any changed."""
        counts = Counter(card.folder_id for card in self._flashcards if card.folder_id)
        folders = []
        changed = False
        for folder in self._folders:
            count = counts.get(folder.id, 0)
            if folder.card_count != count:
                folder = folder.model_copy(update={"card_count": count})
                changed = True
            folders.append(folder)
        if changed:
            self._folders = folders
            self._schedule(FOLDERS_KEY)
        return changed

    # --- Categories ---

    def create_category(self, name: str) -> str | None:
        name = name.strip()
        if not name:
            return None
        if name not in self._categories:
            self._categories.append(name)
            self._schedule(CATEGORIES_KEY)
        return name

    def delete_category(self, name: str) -> bool:
        """Remove a category, moving its cards to the fallback category first.

        The fallback category itself cannot be deleted.
        """
        if name == self.fallback_category:
            logger.debug("Refusing to delete the fallback category %r", name)
            return False
        if name not in self._categories:
            return False
        cards = [
            card.model_copy(update={"category": self.fallback_category})
            if card.category == name
            else card
            for card in self._flashcards
        ]
        categories = [label for label in self._categories if label != name]
        self._flashcards, self._categories = cards, categories
        if self._loading:
            self._deleted_categories.add(name)
        self._schedule(CATEGORIES_KEY)
        self._flashcards_changed()
        return True

    # --- Study history ---

    def save_study_session(self, session: StudySession) -> None:
        self._sessions.append(session.model_copy())
        self._schedule(SESSIONS_KEY)

    # --- Internals ---

    def _card_index(self, card_id: str) -> int | None:
        for index, card in enumerate(self._flashcards):
            if card.id == card_id:
                return index
        return None

    def _folder_index(self, folder_id: str) -> int | None:
        for index, folder in enumerate(self._folders):
            if folder.id == folder_id:
                return index
        return None

    def _flashcards_changed(self) -> None:
        self.recompute_folder_counts()
        self._schedule(FLASHCARDS_KEY)

    def _schedule(self, key: str) -> None:
        if key in self._unreadable_keys:
            logger.debug("Not persisting %r: its stored value could not be read", key)
            return
        if self._loading:
            # Writing now would replace storage with a partly loaded collection.
            self._dirty_keys.add(key)
            return
        self._writer.schedule(key, partial(self._render, key))

    def _render(self, key: str) -> str:
        payload: list[Any]
        if key == FLASHCARDS_KEY:
            payload = [card.to_storage() for card in self._flashcards]
        elif key == FOLDERS_KEY:
            payload = [folder.to_storage() for folder in self._folders]
        elif key == CATEGORIES_KEY:
            payload = list(self._categories)
        else:
            payload = [session.to_storage() for session in self._sessions]
        return json.dumps(payload, ensure_ascii=False)


def _writable(
    updates: Mapping[str, Any], model: type[BaseModel], readonly: frozenset[str]
) -> dict[str, Any]:
    """Keep only known, writable fields from a partial update.

    Keys may be attribute names or their camelCase storage aliases.
    """
    names = {}
    for name, field in model.model_fields.items():
        names[name] = name
        if field.alias:
            names[field.alias] = name
    changes = {}
    for key, value in updates.items():
        name = names.get(key)
        if name is not None and name not in readonly:
            changes[name] = value
    return changes
