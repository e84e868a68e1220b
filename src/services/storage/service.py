"""
Blob storage facade.

BlobStore is the only storage surface the API layer uses. Each operation
resolves the storage mode, dispatches to that mode's backend and returns
backend-agnostic results; only ConfigurationError and BackendError escape.
"""

from collections.abc import Callable

import httpx

from src.core.config import Settings, get_settings
from src.core.exceptions import ConfigurationError, StorageError, ValidationError
from src.core.logging import StorageLogger, describe_storage_env, serialize_error
from src.services.storage.base import (
    BlobEnvironment,
    BlobRecord,
    HealthReport,
    ListResult,
    PutResult,
    StorageBackend,
    StorageMode,
)
from src.services.storage.factory import create_storage_backends, resolve_mode
from src.services.storage.memory import MemoryStorageBackend
from src.services.storage.pager import filter_by_prefix, normalize_limit, paginate
from src.services.storage.paths import (
    ProxyUrlBuilder,
    apply_random_suffix,
    cache_control_from_seconds,
    normalize_path,
)
from src.services.storage.remote import RemoteStorageBackend


class BlobStore:
    """Mode-switching blob storage facade."""

    def __init__(
        self,
        settings_provider: Callable[[], Settings] = get_settings,
        transport: httpx.AsyncBaseTransport | None = None,
        backends: dict[StorageMode, StorageBackend] | None = None,
    ) -> None:
        """
        Initialize the facade.

        Args:
            settings_provider: Returns the current settings; called per operation.
            transport: Optional httpx transport for the remote backend.
            backends: Prebuilt backends, one per mode. Built by the factory if None.
        """
        self._settings_provider = settings_provider
        self.log = StorageLogger(settings_provider)
        self._backends = backends or create_storage_backends(
            settings_provider, self.log, transport=transport
        )

    @property
    def settings(self) -> Settings:
        return self._settings_provider()

    @property
    def proxy(self) -> ProxyUrlBuilder:
        return ProxyUrlBuilder(self.settings.public_storage_base_url)

    def _resolve(self) -> tuple[StorageMode, StorageBackend]:
        try:
            mode = resolve_mode(self.settings)
        except ConfigurationError as e:
            self.log.error("storage_mode_resolve_failed", error=serialize_error(e))
            raise
        return mode, self._backends[mode]

    async def put_blob_from_buffer(
        self,
        path: str,
        data: bytes,
        content_type: str,
        add_random_suffix: bool = False,
        cache_control_max_age: float | None = None,
    ) -> PutResult:
        """
        Store a whole buffer and return its proxy URLs.

        Args:
            path: Object key or path; leading slashes are stripped.
            data: Blob content.
            content_type: MIME type recorded with the blob.
            add_random_suffix: Insert a random token before the extension.
            cache_control_max_age: Optional public max-age in seconds.

        Returns:
            PutResult whose url and download_url are the final key's proxy URL.

        Raises:
            ValidationError: If the path is empty.
            ConfigurationError: If storage is not configured.
            BackendError: If the remote backend rejects the upload.
        """
        mode, backend = self._resolve()
        target = normalize_path(path)
        if not target:
            raise ValidationError(message="Blob path must not be empty", details={"path": path})
        if add_random_suffix:
            target = apply_random_suffix(target)
        cache_control = cache_control_from_seconds(cache_control_max_age)

        self.log.info(
            "blob_put_start",
            path=target,
            mode=mode.value,
            content_type=content_type,
            cache_control=cache_control,
        )
        try:
            await backend.put(target, data, content_type, cache_control)
        except StorageError as e:
            self.log.error("blob_put_failed", path=target, mode=mode.value, error=serialize_error(e))
            raise

        url = self.proxy.build(target)
        self.log.info("blob_put_success", path=target, mode=mode.value, size=len(data))
        return PutResult(url=url, download_url=url, pathname=target)

    async def read_blob(self, path_or_url: str) -> BlobRecord | None:
        """
        Read a blob by key or proxy URL.

        Returns:
            BlobRecord, or None when the blob does not exist or the input does
            not address this store (data URIs, foreign URLs).
        """
        mode, backend = self._resolve()
        key = self.proxy.extract_key(path_or_url)
        if not key:
            self.log.info("blob_read_skipped", path=path_or_url, reason="unresolvable")
            return None

        self.log.info("blob_read_start", path=key, mode=mode.value)
        try:
            record = await backend.get(key)
        except StorageError as e:
            self.log.error("blob_read_failed", path=key, mode=mode.value, error=serialize_error(e))
            raise

        if record is None:
            self.log.info("blob_read_miss", path=key, mode=mode.value)
            return None
        self.log.info("blob_read_hit", path=key, mode=mode.value, size=record.size)
        return record

    async def delete_blob(self, path: str) -> bool:
        """
        Delete a blob.

        Returns:
            Whether the blob existed. Remote deletes are idempotent and always
            report True.

        Raises:
            ValidationError: If the path is empty.
        """
        mode, backend = self._resolve()
        key = normalize_path(path)
        if not key:
            raise ValidationError(message="Blob path must not be empty", details={"path": path})
        self.log.info("blob_delete_start", path=key, mode=mode.value)
        try:
            existed = await backend.delete(key)
        except StorageError as e:
            self.log.error("blob_delete_failed", path=key, mode=mode.value, error=serialize_error(e))
            raise
        self.log.info("blob_delete_complete", path=key, mode=mode.value, existed=existed)
        return existed

    async def delete_blobs_by_prefix(self, prefix: str) -> int:
        """Delete every blob under a prefix and return how many were removed."""
        mode, backend = self._resolve()
        normalized = normalize_path(prefix)
        self.log.info("blob_delete_prefix_start", prefix=normalized, mode=mode.value)
        try:
            removed = await backend.delete_prefix(normalized)
        except StorageError as e:
            self.log.error(
                "blob_delete_prefix_failed",
                prefix=normalized,
                mode=mode.value,
                error=serialize_error(e),
            )
            raise
        self.log.info("blob_delete_prefix_complete", prefix=normalized, mode=mode.value, removed=removed)
        return removed

    async def list_blobs(
        self,
        prefix: str = "",
        limit: int | None = None,
        cursor: str | None = None,
    ) -> ListResult:
        """
        List blobs one page at a time.

        Args:
            prefix: Only keys starting with this prefix are returned.
            limit: Page size; defaults to 100.
            cursor: Cursor from the previous page.

        Returns:
            ListResult with ``cursor`` set when more pages remain.
        """
        mode, backend = self._resolve()
        normalized = normalize_path(prefix or "")
        page_size = normalize_limit(limit)
        self.log.info(
            "blob_list_start",
            prefix=normalized,
            limit=page_size,
            cursor=cursor,
            mode=mode.value,
        )
        try:
            candidates = await backend.list(normalized, page_size)
        except StorageError as e:
            self.log.error("blob_list_failed", prefix=normalized, mode=mode.value, error=serialize_error(e))
            raise

        page = paginate(filter_by_prefix(candidates, normalized), page_size, cursor)
        proxy = self.proxy
        for entry in page.entries:
            entry.url = entry.download_url = proxy.build(entry.pathname)

        self.log.info(
            "blob_list_complete",
            prefix=normalized,
            mode=mode.value,
            count=len(page.entries),
            has_more=page.has_more,
        )
        return ListResult(blobs=page.entries, has_more=page.has_more, cursor=page.cursor)

    async def blob_health(self) -> HealthReport:
        """Check the active backend. Never raises."""
        try:
            mode, backend = self._resolve()
        except ConfigurationError as e:
            return HealthReport(ok=False, mode=None, reason=e.message, bucket=None)
        return await backend.health()

    def get_blob_environment(self) -> BlobEnvironment:
        """
        Describe the storage configuration for diagnostics surfaces.

        Configuration failures are reported in ``error`` instead of raised.
        """
        settings = self.settings
        diagnostics = describe_storage_env(settings)
        mode: StorageMode | None = None
        try:
            mode = resolve_mode(settings)
            bucket = self._backends[mode].bucket
        except ConfigurationError as e:
            self.log.error("storage_environment_failed", error=serialize_error(e))
            return BlobEnvironment(
                provider=mode.value if mode else "unknown",
                configured=False,
                bucket=None,
                diagnostics=diagnostics,
                error=e.to_dict()["error"],
            )
        return BlobEnvironment(
            provider=mode.value,
            configured=True,
            bucket=bucket,
            diagnostics=diagnostics,
        )

    def clear_memory_blobs(self) -> None:
        """Empty the memory backend regardless of the active mode."""
        backend = self._backends.get(StorageMode.MEMORY)
        if isinstance(backend, MemoryStorageBackend):
            backend.clear()

    def clear_cache(self) -> None:
        """Invalidate cached remote credentials."""
        backend = self._backends.get(StorageMode.REMOTE)
        if isinstance(backend, RemoteStorageBackend):
            backend.client.invalidate()
            self.log.info("remote_credentials_cleared")

    async def aclose(self) -> None:
        """Release HTTP resources held by the remote backend."""
        backend = self._backends.get(StorageMode.REMOTE)
        if isinstance(backend, RemoteStorageBackend):
            await backend.client.aclose()


# Singleton instance
_blob_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """
    Get the process-wide blob store.

    Settings are re-read on every operation, so the singleton itself only
    holds backends and cached credentials.
    """
    global _blob_store

    if _blob_store is None:
        _blob_store = BlobStore()
    return _blob_store


def reset_blob_store() -> None:
    """Reset the blob store singleton (for testing)."""
    global _blob_store
    _blob_store = None
