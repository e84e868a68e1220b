"""Pydantic models for API request/response schemas."""

from src.models.common import (
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    StrictBaseModel,
)
from src.models.storage import (
    BlobEntry,
    BlobListResponse,
    BlobStatusResponse,
    FlowDiagnostics,
    FlowStep,
    StorageDiagnosticsResponse,
    StorageEnvironment,
    StorageHealth,
)

__all__ = [
    "StrictBaseModel",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "BlobEntry",
    "BlobListResponse",
    "BlobStatusResponse",
    "FlowDiagnostics",
    "FlowStep",
    "StorageDiagnosticsResponse",
    "StorageEnvironment",
    "StorageHealth",
]
