"""
Pydantic models for blob storage and diagnostics endpoints.
"""

from typing import Any

from pydantic import Field

from src.models.common import StrictBaseModel
from src.services.storage.base import (
    BlobEnvironment,
    HealthReport,
    ListedEntry,
    ListResult,
)


class BlobEntry(StrictBaseModel):
    """A listed blob."""

    pathname: str = Field(..., description="Object key")
    url: str = Field(..., description="Proxy URL")
    download_url: str = Field(..., description="Proxy URL for downloads")
    uploaded_at: str | None = Field(default=None, description="Upload time")
    size: int | None = Field(default=None, description="Size in bytes")

    @classmethod
    def from_entry(cls, entry: ListedEntry) -> "BlobEntry":
        return cls(**entry.to_dict())


class BlobListResponse(StrictBaseModel):
    """One page of blobs."""

    blobs: list[BlobEntry] = Field(default_factory=list)
    has_more: bool = Field(default=False, description="More pages remain")
    cursor: str | None = Field(default=None, description="Cursor for the next page")

    @classmethod
    def from_result(cls, result: ListResult) -> "BlobListResponse":
        return cls(
            blobs=[BlobEntry.from_entry(entry) for entry in result.blobs],
            has_more=result.has_more,
            cursor=result.cursor,
        )


class StorageHealth(StrictBaseModel):
    """Storage backend reachability."""

    ok: bool
    mode: str | None = None
    reason: str | None = None
    bucket: str | None = None

    @classmethod
    def from_report(cls, report: HealthReport) -> "StorageHealth":
        return cls(**report.to_dict())


class StorageEnvironment(StrictBaseModel):
    """Storage configuration summary."""

    provider: str
    configured: bool
    bucket: str | None = None
    diagnostics: dict[str, Any] = Field(default_factory=dict)
    error: dict[str, Any] | None = None

    @classmethod
    def from_environment(cls, env: BlobEnvironment) -> "StorageEnvironment":
        return cls(**env.to_dict())


class BlobStatusResponse(StrictBaseModel):
    """Combined environment and health for the blob-status debug endpoint."""

    env: StorageEnvironment
    health: StorageHealth


class FlowStep(StrictBaseModel):
    """One step of the storage write/read/delete probe."""

    id: str
    label: str
    ok: bool
    duration_ms: float | None = None
    error: str | None = None
    details: Any = None


class FlowDiagnostics(StrictBaseModel):
    """Result of the storage probe."""

    ok: bool = False
    probe_id: str
    started_at: str
    mode: str
    steps: list[FlowStep] = Field(default_factory=list)


class StorageDiagnosticsResponse(StrictBaseModel):
    """Storage diagnostics endpoint response."""

    ok: bool
    env: StorageEnvironment
    health: StorageHealth
    diagnostics: FlowDiagnostics
