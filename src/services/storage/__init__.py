"""Blob storage abstraction over in-memory and remote object storage."""

from src.services.storage.base import (
    BlobEnvironment,
    BlobRecord,
    HealthReport,
    ListedEntry,
    ListResult,
    PutResult,
    StorageBackend,
    StorageMode,
)
from src.services.storage.factory import resolve_mode
from src.services.storage.paths import BLOB_PROXY_PREFIX, ProxyUrlBuilder
from src.services.storage.service import BlobStore, get_blob_store, reset_blob_store

__all__ = [
    "BLOB_PROXY_PREFIX",
    "BlobEnvironment",
    "BlobRecord",
    "BlobStore",
    "HealthReport",
    "ListResult",
    "ListedEntry",
    "ProxyUrlBuilder",
    "PutResult",
    "StorageBackend",
    "StorageMode",
    "get_blob_store",
    "reset_blob_store",
    "resolve_mode",
]
