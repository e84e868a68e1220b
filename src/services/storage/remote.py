"""
Remote object storage backend.

Implements StorageBackend against a REST object storage API
(``{endpoint}/object/{bucket}/{key}`` for objects, ``{endpoint}/object/list/{bucket}``
for listings) using bearer-token credentials.
"""

import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from src.core.config import Settings
from src.core.exceptions import BackendError, ConfigurationError
from src.core.logging import StorageLogger, serialize_error
from src.services.storage.base import (
    BlobRecord,
    HealthReport,
    ListedEntry,
    StorageBackend,
    StorageMode,
)
from src.services.storage.paths import encode_path_for_url, normalize_path

REMOTE_ENDPOINT_KEY = "STORAGE_ENDPOINT_URL"
REMOTE_BUCKET_KEY = "STORAGE_BUCKET"
REMOTE_SERVICE_KEY = "STORAGE_SERVICE_KEY"
REMOTE_CREDENTIAL_KEYS = (REMOTE_ENDPOINT_KEY, REMOTE_BUCKET_KEY, REMOTE_SERVICE_KEY)

# Listings fetch a fixed window and paginate client-side; keys beyond it are not seen.
REMOTE_LIST_FETCH_LIMIT = 1000
ERROR_BODY_LIMIT = 200

_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class RemoteCredentials:
    """Resolved connection details for the remote object storage API."""

    endpoint_base: str
    bucket: str
    service_key: str


def load_remote_credentials(settings: Settings) -> RemoteCredentials:
    """
    Validate and collect remote storage credentials.

    Raises:
        ConfigurationError: Naming every missing key, or the endpoint key if it
            is not an http(s) URL.
    """
    missing = [key for key in REMOTE_CREDENTIAL_KEYS if settings.get_value(key) is None]
    if missing:
        raise ConfigurationError(
            message=f"Remote storage requires {', '.join(missing)} to be set",
            missing_keys=missing,
        )

    endpoint = settings.require_value(REMOTE_ENDPOINT_KEY).rstrip("/")
    if not _HTTP_URL_RE.match(endpoint):
        raise ConfigurationError(
            message=f"{REMOTE_ENDPOINT_KEY} must be an http(s) URL",
            missing_keys=[REMOTE_ENDPOINT_KEY],
        )
    try:
        host = httpx.URL(endpoint).host
    except httpx.InvalidURL as e:
        raise ConfigurationError(
            message=f"{REMOTE_ENDPOINT_KEY} is not a valid URL: {e}",
            missing_keys=[REMOTE_ENDPOINT_KEY],
        ) from e
    if not host:
        raise ConfigurationError(
            message=f"{REMOTE_ENDPOINT_KEY} must include a host",
            missing_keys=[REMOTE_ENDPOINT_KEY],
        )

    return RemoteCredentials(
        endpoint_base=endpoint,
        bucket=settings.require_value(REMOTE_BUCKET_KEY),
        service_key=settings.require_value(REMOTE_SERVICE_KEY),
    )


class RemoteStorageClient:
    """
    HTTP client for the remote object storage API.

    Credentials are resolved on first use and cached until ``invalidate()``.
    Requests already in flight keep the credentials they started with.
    """

    def __init__(
        self,
        settings_provider: Callable[[], Settings],
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings_provider: Returns the current settings.
            transport: Optional httpx transport (tests inject a mock).
        """
        self._settings_provider = settings_provider
        self._transport = transport
        self._credentials: RemoteCredentials | None = None
        self._http: httpx.AsyncClient | None = None
        self._lock = threading.Lock()

    @property
    def credentials(self) -> RemoteCredentials:
        """Cached credentials, resolved from settings on first access."""
        with self._lock:
            if self._credentials is None:
                self._credentials = load_remote_credentials(self._settings_provider())
            return self._credentials

    def invalidate(self) -> None:
        """Forget cached credentials; the next request re-reads settings."""
        with self._lock:
            self._credentials = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(transport=self._transport)
        return self._http

    def timeout(self) -> httpx.Timeout:
        """Request timeout from the current settings, re-read on every call."""
        return httpx.Timeout(self._settings_provider().storage_timeout_seconds)

    @staticmethod
    def auth_headers(credentials: RemoteCredentials) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credentials.service_key}",
            "apikey": credentials.service_key,
        }

    def object_url(self, credentials: RemoteCredentials, key: str) -> str:
        path = encode_path_for_url(f"{credentials.bucket}/{normalize_path(key)}")
        return f"{credentials.endpoint_base}/object/{path}"

    def list_url(self, credentials: RemoteCredentials) -> str:
        return f"{credentials.endpoint_base}/object/list/{quote(credentials.bucket, safe='')}"

    async def request(
        self,
        operation: str,
        method: str,
        url: str,
        credentials: RemoteCredentials,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send one request. Transport failures, timeouts and malformed URLs
        surface as BackendError with no status.

        Non-2xx responses are returned as-is; callers decide which are errors.
        """
        merged = self.auth_headers(credentials)
        if headers:
            merged.update(headers)
        try:
            return await self._client().request(
                method,
                url,
                headers=merged,
                timeout=self.timeout(),
                **kwargs,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackendError(
                message=f"Remote storage {operation} request failed: {e}",
                operation=operation,
            ) from e

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None


def _backend_error(operation: str, response: httpx.Response) -> BackendError:
    body = response.text[:ERROR_BODY_LIMIT]
    return BackendError(
        message=f"Remote storage {operation} failed with status {response.status_code}: {body}",
        status=response.status_code,
        body=body,
        operation=operation,
    )


class RemoteStorageBackend(StorageBackend):
    """Remote object storage implementation."""

    mode = StorageMode.REMOTE

    def __init__(self, client: RemoteStorageClient, storage_logger: StorageLogger) -> None:
        self.client = client
        self.log = storage_logger

    @property
    def bucket(self) -> str | None:
        return self.client.credentials.bucket

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        cache_control: str | None = None,
    ) -> None:
        """Upload the full buffer in a single POST."""
        credentials = self.client.credentials
        headers = {"Content-Type": content_type}
        if cache_control:
            headers["Cache-Control"] = cache_control

        response = await self.client.request(
            "upload",
            "POST",
            self.client.object_url(credentials, key),
            credentials,
            headers=headers,
            content=bytes(data),
        )
        if not response.is_success:
            error = _backend_error("upload", response)
            self.log.error(
                "remote_upload_failed",
                path=key,
                bucket=credentials.bucket,
                status=error.status,
                response=error.body,
            )
            raise error

    async def get(self, key: str) -> BlobRecord | None:
        """Download an object; 404 means not found."""
        credentials = self.client.credentials
        response = await self.client.request(
            "download",
            "GET",
            self.client.object_url(credentials, key),
            credentials,
        )
        if response.status_code == 404:
            return None
        if not response.is_success:
            error = _backend_error("download", response)
            self.log.error(
                "remote_download_failed",
                path=key,
                bucket=credentials.bucket,
                status=error.status,
                response=error.body,
            )
            raise error

        content = response.content
        try:
            size = int(response.headers.get("content-length") or len(content))
        except ValueError:
            size = len(content)
        return BlobRecord(
            buffer=content,
            content_type=response.headers.get("content-type") or "application/octet-stream",
            size=size or len(content),
            uploaded_at=response.headers.get("last-modified"),
            cache_control=response.headers.get("cache-control"),
            etag=response.headers.get("etag"),
        )

    async def delete(self, key: str) -> bool:
        """Delete an object. A missing object counts as deleted."""
        credentials = self.client.credentials
        response = await self.client.request(
            "delete",
            "DELETE",
            self.client.object_url(credentials, key),
            credentials,
        )
        if not response.is_success and response.status_code != 404:
            error = _backend_error("delete", response)
            self.log.error(
                "remote_delete_failed",
                path=key,
                bucket=credentials.bucket,
                status=error.status,
                response=error.body,
            )
            raise error
        return True

    async def list(self, prefix: str = "", limit: int = 1000) -> list[ListedEntry]:
        """
        List objects under a prefix.

        The API returns names relative to the prefix folder; keys are rebuilt
        by joining them back onto the prefix and re-filtered locally.
        """
        credentials = self.client.credentials
        normalized = normalize_path(prefix)
        response = await self.client.request(
            "list",
            "POST",
            self.client.list_url(credentials),
            credentials,
            json={
                "prefix": normalized,
                "limit": max(limit, REMOTE_LIST_FETCH_LIMIT),
                "offset": 0,
                "sortBy": {"column": "name", "order": "asc"},
            },
        )
        if not response.is_success:
            error = _backend_error("list", response)
            self.log.error(
                "remote_list_failed",
                prefix=normalized,
                bucket=credentials.bucket,
                status=error.status,
                response=error.body,
            )
            raise error

        entries = []
        for raw in _listing_rows(response):
            name = raw.get("name")
            if not isinstance(name, str) or not name:
                continue
            pathname = _join_listing_key(normalized, name)
            if normalized and not pathname.startswith(normalized):
                continue
            metadata = raw.get("metadata") or {}
            size = metadata.get("size") if isinstance(metadata, dict) else None
            entries.append(
                ListedEntry(
                    pathname=pathname,
                    uploaded_at=raw.get("updated_at") or raw.get("created_at") or None,
                    size=size if isinstance(size, int) and not isinstance(size, bool) else None,
                )
            )
        return entries

    async def health(self) -> HealthReport:
        """Issue a one-entry listing against the bucket."""
        try:
            credentials = self.client.credentials
        except ConfigurationError as e:
            self.log.error("health_remote_unconfigured", error=serialize_error(e))
            return HealthReport(ok=False, mode=self.mode, reason=e.message, bucket=None)

        try:
            response = await self.client.request(
                "health",
                "POST",
                self.client.list_url(credentials),
                credentials,
                json={"prefix": "", "limit": 1},
            )
        except BackendError as e:
            self.log.error("health_remote_failed", bucket=credentials.bucket, error=serialize_error(e))
            return HealthReport(ok=False, mode=self.mode, reason=e.message, bucket=credentials.bucket)

        if not response.is_success:
            text = response.text[:ERROR_BODY_LIMIT]
            self.log.error(
                "health_remote_error",
                bucket=credentials.bucket,
                status=response.status_code,
                response=text,
            )
            return HealthReport(
                ok=False,
                mode=self.mode,
                reason=text or f"status {response.status_code}",
                bucket=credentials.bucket,
            )

        self.log.info("health_remote_success", bucket=credentials.bucket)
        return HealthReport(ok=True, mode=self.mode, bucket=credentials.bucket)


def _listing_rows(response: httpx.Response) -> list[dict[str, Any]]:
    try:
        payload = response.json()
    except ValueError:
        return []
    if isinstance(payload, dict):
        payload = payload.get("data")
    if not isinstance(payload, list):
        return []
    return [row for row in payload if isinstance(row, dict)]


def _join_listing_key(prefix: str, name: str) -> str:
    if not prefix:
        return normalize_path(name)
    return f"{prefix.rstrip('/')}/{name.lstrip('/')}"
