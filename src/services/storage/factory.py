"""
Storage backend factory.

Resolves the active storage mode from configuration and creates the closed set
of backends the facade dispatches to.
"""

from collections.abc import Callable

import httpx

from src.core.config import Settings
from src.core.logging import StorageLogger
from src.services.storage.base import StorageBackend, StorageMode
from src.services.storage.memory import MemoryStorageBackend
from src.services.storage.remote import RemoteStorageBackend, RemoteStorageClient

STORAGE_MODE_KEY = "STORAGE_MODE"


def resolve_mode(settings: Settings) -> StorageMode:
    """
    Determine the active storage backend.

    Not cached: callers resolve on every operation so a settings refresh takes
    effect without a restart.

    Args:
        settings: Current application settings.

    Returns:
        The configured StorageMode.

    Raises:
        ConfigurationError: If STORAGE_MODE is missing or not a known mode.
    """
    value = settings.require_enum_value(
        STORAGE_MODE_KEY,
        [mode.value for mode in StorageMode],
    )
    return StorageMode(value)


def create_storage_backends(
    settings_provider: Callable[[], Settings],
    storage_logger: StorageLogger,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[StorageMode, StorageBackend]:
    """
    Create one backend per storage mode.

    Args:
        settings_provider: Returns the current settings.
        storage_logger: Diagnostic logger shared with the facade.
        transport: Optional httpx transport for the remote client.

    Returns:
        Mapping of every StorageMode to its backend.
    """
    return {
        StorageMode.MEMORY: MemoryStorageBackend(),
        StorageMode.REMOTE: RemoteStorageBackend(
            client=RemoteStorageClient(settings_provider, transport=transport),
            storage_logger=storage_logger,
        ),
    }
