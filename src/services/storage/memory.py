"""
In-process memory storage backend.

Implements StorageBackend on a plain dict for local development and tests.
Nothing survives a process restart.
"""

import threading
from datetime import datetime, timezone

from src.core.logging import get_logger
from src.services.storage.base import (
    BlobRecord,
    HealthReport,
    ListedEntry,
    StorageBackend,
    StorageMode,
    StoredObject,
)

logger = get_logger(__name__)


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class MemoryStorageBackend(StorageBackend):
    """Ephemeral key-to-object map guarded by a lock."""

    mode = StorageMode.MEMORY

    def __init__(self) -> None:
        self._objects: dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        """Store a copy of the buffer, replacing any previous object."""
        stored = StoredObject(
            buffer=bytes(data),
            content_type=content_type,
            uploaded_at=utc_timestamp(),
            size=len(data),
            cache_control=cache_control,
        )
        with self._lock:
            self._objects[key] = stored

    async def get(self, key: str) -> BlobRecord | None:
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            return None
        return BlobRecord(
            buffer=bytes(stored.buffer),
            content_type=stored.content_type,
            size=stored.size,
            uploaded_at=stored.uploaded_at,
            cache_control=stored.cache_control,
        )

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._objects.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        """Remove every object under the prefix in one locked pass."""
        with self._lock:
            doomed = [key for key in self._objects if not prefix or key.startswith(prefix)]
            for key in doomed:
                del self._objects[key]
        return len(doomed)

    async def list(self, prefix: str = "", limit: int = 1000) -> list[ListedEntry]:
        # Memory listings are never truncated; limit is applied by the pager.
        with self._lock:
            snapshot = list(self._objects.items())
        return [
            ListedEntry(pathname=key, uploaded_at=stored.uploaded_at, size=stored.size)
            for key, stored in snapshot
            if not prefix or key.startswith(prefix)
        ]

    async def health(self) -> HealthReport:
        return HealthReport(
            ok=True,
            mode=self.mode,
            reason="memory storage active",
            bucket=None,
        )

    def clear(self) -> None:
        """Drop every stored object."""
        with self._lock:
            self._objects.clear()
        logger.info("memory_blobs_cleared")
