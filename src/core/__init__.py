"""Core module - Configuration, logging, and exceptions."""

from src.core.config import Settings, get_settings, refresh_settings
from src.core.exceptions import (
    BackendError,
    BlobNotFoundError,
    ConfigurationError,
    NotFoundError,
    SessionRecorderError,
    StorageError,
    ValidationError,
)

__all__ = [
    "Settings",
    "get_settings",
    "refresh_settings",
    "SessionRecorderError",
    "NotFoundError",
    "BlobNotFoundError",
    "ValidationError",
    "StorageError",
    "ConfigurationError",
    "BackendError",
]
