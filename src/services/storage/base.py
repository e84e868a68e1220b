"""
Abstract base class for blob storage backends.

Provides a consistent interface for both the in-process memory store and the
remote object storage API. Backends only deal in normalized keys; proxy URLs,
pagination and mode selection live in the facade.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StorageMode(str, Enum):
    """Available blob storage backends."""

    MEMORY = "memory"
    REMOTE = "remote"


@dataclass
class StoredObject:
    """A blob held by the memory backend."""

    buffer: bytes
    content_type: str
    uploaded_at: str  # ISO-8601 UTC
    size: int
    cache_control: str | None = None


@dataclass
class BlobRecord:
    """Result of reading a blob, independent of the backend that served it."""

    buffer: bytes
    content_type: str
    size: int
    uploaded_at: str | None = None
    cache_control: str | None = None
    etag: str | None = None


@dataclass
class ListedEntry:
    """A listed blob. Rebuilt on every list call, never stored."""

    pathname: str
    url: str = ""
    download_url: str = ""
    uploaded_at: str | None = None
    size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pathname": self.pathname,
            "url": self.url,
            "download_url": self.download_url,
            "uploaded_at": self.uploaded_at,
            "size": self.size,
        }


@dataclass
class PutResult:
    """Proxy URLs for a freshly written blob."""

    url: str
    download_url: str
    pathname: str


@dataclass
class ListResult:
    """One page of a blob listing."""

    blobs: list[ListedEntry] = field(default_factory=list)
    has_more: bool = False
    cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "blobs": [blob.to_dict() for blob in self.blobs],
            "has_more": self.has_more,
            "cursor": self.cursor,
        }


@dataclass
class HealthReport:
    """Outcome of a backend reachability check."""

    ok: bool
    mode: StorageMode | None
    reason: str | None = None
    bucket: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "mode": self.mode.value if self.mode else None,
            "reason": self.reason,
            "bucket": self.bucket,
        }


@dataclass
class BlobEnvironment:
    """Storage configuration summary for diagnostics surfaces."""

    provider: str
    configured: bool
    bucket: str | None
    diagnostics: dict[str, Any]
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "configured": self.configured,
            "bucket": self.bucket,
            "diagnostics": self.diagnostics,
            "error": self.error,
        }


class StorageBackend(ABC):
    """Abstract base class for blob storage backends."""

    mode: StorageMode

    @property
    def bucket(self) -> str | None:
        """Bucket name for diagnostics, if the backend has one."""
        return None

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        """
        Store a blob, overwriting any existing object at the key.

        Args:
            key: Normalized object key.
            data: Full blob content.
            content_type: MIME type of the blob.
            cache_control: Optional Cache-Control header value.

        Raises:
            BackendError: If the backend rejects the write.
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> BlobRecord | None:
        """
        Read a blob.

        Args:
            key: Normalized object key.

        Returns:
            BlobRecord, or None if no object exists at the key.

        Raises:
            BackendError: If the backend fails for any reason other than not found.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a blob.

        Args:
            key: Normalized object key.

        Returns:
            True if the object was removed (or the backend cannot tell),
            False if it was known not to exist.
        """
        ...

    @abstractmethod
    async def list(self, prefix: str = "", limit: int = 1000) -> list[ListedEntry]:
        """
        List candidate entries under a prefix.

        Entries carry only pathname, uploaded_at and size; the facade fills in
        proxy URLs and paginates.

        Args:
            prefix: Normalized key prefix; empty lists everything.
            limit: Minimum number of entries the backend should try to return.

        Returns:
            Unordered list of entries.
        """
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """
        Delete every object under a prefix.

        Args:
            prefix: Normalized key prefix; empty deletes everything.

        Returns:
            Number of objects deleted.
        """
        removed = 0
        for entry in await self.list(prefix):
            if prefix and not entry.pathname.startswith(prefix):
                continue
            await self.delete(entry.pathname)
            removed += 1
        return removed

    @abstractmethod
    async def health(self) -> HealthReport:
        """
        Check that the backend is reachable without mutating anything.

        Returns:
            HealthReport; never raises for reachability failures.
        """
        ...
