"""Key/value storage backends for the locally persisted assistant state.

The conversation log and saved places are plain string entries addressed by
key, like browser ``localStorage``. Every backend enforces an optional
per-entry quota and raises :class:`StorageQuotaExceeded` when a write would
exceed it, so callers can shrink the payload and retry.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Optional, Protocol

import redis
from redis.exceptions import ConnectionError, RedisError, ResponseError

import config

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage backend cannot complete an operation."""


class StorageQuotaExceeded(StorageError):
    """Raised when a write does not fit in the backend's quota."""


class KeyValueStore(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _check_quota(key: str, value: str, quota_bytes: int) -> None:
    if quota_bytes and len(value.encode("utf-8")) > quota_bytes:
        raise StorageQuotaExceeded(
            f"Value for '{key}' is {len(value.encode('utf-8'))} bytes, quota is {quota_bytes}"
        )


class InMemoryStore:
    """Process-local store, used in tests and when persistence is disabled."""

    def __init__(self, quota_bytes: int = 0) -> None:
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        _check_quota(key, value, self.quota_bytes)
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStore:
    """One UTF-8 file per key inside a local directory."""

    def __init__(self, directory: Path, quota_bytes: int = 0) -> None:
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        _check_quota(key, value, self.quota_bytes)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            # ENOSPC / EDQUOT mean the disk itself is full
            if e.errno in (28, 122):
                raise StorageQuotaExceeded(f"No space left writing {path}: {e}") from e
            raise StorageError(f"Cannot write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {key}: {e}") from e


class RedisStore:
    """Redis-backed store for running the assistant next to a shared cache."""

    def __init__(self, url: str, quota_bytes: int = 0, namespace: str = "travel_map") -> None:
        self.quota_bytes = quota_bytes
        self.namespace = namespace
        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def ping(self) -> bool:
        return bool(self._client.ping())

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self._client.get(self._key(key))
        except RedisError as e:
            raise StorageError(f"Error reading '{key}' from Redis: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        _check_quota(key, value, self.quota_bytes)
        try:
            self._client.set(self._key(key), value)
        except ResponseError as e:
            # maxmemory reached with a noeviction policy
            if str(e).startswith("OOM"):
                raise StorageQuotaExceeded(f"Redis is out of memory storing '{key}': {e}") from e
            raise StorageError(f"Error storing '{key}' in Redis: {e}") from e
        except RedisError as e:
            raise StorageError(f"Error storing '{key}' in Redis: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except RedisError as e:
            raise StorageError(f"Error deleting '{key}' from Redis: {e}") from e


def create_store(backend: Optional[str] = None) -> KeyValueStore:
    """Build the configured backend, falling back to memory when Redis is unreachable."""
    backend = (backend or config.STORAGE_BACKEND).lower()
    quota = config.STORAGE_QUOTA_BYTES

    if backend == "redis":
        if not config.REDIS_URL:
            logger.info("REDIS_URL not set. Using in-memory storage.")
            return InMemoryStore(quota_bytes=quota)
        try:
            store = RedisStore(config.REDIS_URL, quota_bytes=quota)
            store.ping()
            logger.info("Connected to Redis for local storage")
            return store
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Failed to connect to Redis: {e}. Using in-memory storage.")
            return InMemoryStore(quota_bytes=quota)

    if backend == "memory":
        return InMemoryStore(quota_bytes=quota)

    logger.info(f"Persisting assistant state under {config.STORAGE_DIR}")
    return FileStore(config.STORAGE_DIR, quota_bytes=quota)


# Global store instance
_store: Optional[KeyValueStore] = None


def get_store() -> KeyValueStore:
    """Get or create the global store instance."""
    global _store
    if _store is None:
        _store = create_store()
    return _store
