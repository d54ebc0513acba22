"""Conversation log and saved-places repositories over a key/value store."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional, Sequence

from pydantic import ValidationError

import config
from workflows.schemas import Message, Place, coerce_places
from workflows.storage import KeyValueStore, StorageError, StorageQuotaExceeded, get_store

logger = logging.getLogger(__name__)


class ConversationMemory:
    """Bounded, sliding-window chat log (most recent ``max_messages`` turns).

    ``load`` never raises and always returns a list. ``save`` keeps only the
    newest entries; when the store reports a quota failure it retries once
    with half the window and otherwise gives up quietly, leaving the
    conversation alive in memory for the rest of the session.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        key: str = config.CONVERSATION_STORAGE_KEY,
        max_messages: int = config.MAX_MESSAGES,
    ) -> None:
        self.store = store if store is not None else get_store()
        self.key = key
        self.max_messages = max(1, max_messages)

    @staticmethod
    def _serialize(messages: Sequence[Message]) -> str:
        return json.dumps([m.model_dump() for m in messages], ensure_ascii=False)

    @staticmethod
    def _coerce(messages: Iterable[Any]) -> List[Message]:
        return [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]

    def save(self, messages: Sequence[Any]) -> None:
        try:
            trimmed = self._coerce(messages)[-self.max_messages:]
        except ValidationError as e:
            logger.error(f"Refusing to persist malformed conversation: {e}")
            return

        try:
            self.store.set_item(self.key, self._serialize(trimmed))
        except StorageQuotaExceeded as e:
            logger.warning(f"Conversation log exceeds storage quota, retrying with fewer messages: {e}")
            halved = trimmed[-(self.max_messages // 2):] if self.max_messages > 1 else trimmed[-1:]
            try:
                self.store.set_item(self.key, self._serialize(halved))
            except StorageError as retry_error:
                logger.error(f"Failed to save conversation log on retry: {retry_error}")
        except StorageError as e:
            logger.error(f"Failed to save conversation log: {e}")

    def load(self) -> List[Message]:
        try:
            stored = self.store.get_item(self.key)
            if not stored:
                return []
            data = json.loads(stored)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return self._coerce(data)[-self.max_messages:]
        except (StorageError, ValueError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.error(f"Failed to load conversation log: {e}")
            return []

    def append(self, *messages: Message) -> List[Message]:
        """Add turns to the persisted log and return the trimmed history."""
        history = self.load() + list(messages)
        self.save(history)
        return history[-self.max_messages:]

    def clear(self) -> None:
        try:
            self.store.remove_item(self.key)
        except StorageError as e:
            logger.error(f"Failed to clear conversation log: {e}")

    def size(self) -> int:
        try:
            stored = self.store.get_item(self.key)
            return len(json.loads(stored)) if stored else 0
        except (StorageError, ValueError, TypeError):
            return 0


class SavedPlacesRepository:
    """User-curated places, persisted independently of search results."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        *,
        key: str = config.SAVED_PLACES_STORAGE_KEY,
    ) -> None:
        self.store = store if store is not None else get_store()
        self.key = key

    @staticmethod
    def dedupe(places: Iterable[Place]) -> List[Place]:
        unique: List[Place] = []
        seen = set()
        for place in places:
            if place.id in seen:
                continue
            seen.add(place.id)
            unique.append(place)
        return unique

    def load(self) -> List[Place]:
        try:
            stored = self.store.get_item(self.key)
            if not stored:
                return []
            data = json.loads(stored)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return self.dedupe(coerce_places(data))
        except (StorageError, ValueError) as e:
            logger.error(f"Failed to load saved places: {e}")
            return []

    def save(self, places: Sequence[Any]) -> List[Place]:
        unique = self.dedupe(coerce_places(places))
        payload = json.dumps([p.model_dump(exclude_none=True) for p in unique], ensure_ascii=False)
        try:
            self.store.set_item(self.key, payload)
        except StorageError as e:
            logger.error(f"Failed to save saved places: {e}")
            return self.load()
        return unique

    def add(self, place: Any) -> List[Place]:
        return self.save(self.load() + coerce_places([place]))

    def remove(self, place_id: str) -> List[Place]:
        return self.save([p for p in self.load() if p.id != place_id])

    def contains(self, place_id: str) -> bool:
        return any(p.id == place_id for p in self.load())

    def clear(self) -> None:
        try:
            self.store.remove_item(self.key)
        except StorageError as e:
            logger.error(f"Failed to clear saved places: {e}")
