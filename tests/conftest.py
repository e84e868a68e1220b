"""
Pytest configuration and fixtures.
"""

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.api.main import create_app
from src.core.config import Settings
from src.services.storage import BlobStore

REMOTE_ENDPOINT = "https://storage.example.test/storage/v1"
REMOTE_BUCKET = "artifacts"
REMOTE_SERVICE_KEY = "service-role-key"


def make_settings(**overrides: Any) -> Settings:
    """Build settings isolated from the process environment and .env file."""
    values: dict[str, Any] = {
        "app_env": "development",
        "app_debug": True,
        "storage_mode": None,
        "storage_endpoint_url": None,
        "storage_bucket": None,
        "storage_service_key": None,
        "public_storage_base_url": None,
        "log_format": "console",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class SettingsHolder:
    """Mutable settings source, so tests can change configuration mid-flight."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def __call__(self) -> Settings:
        return self.settings


class FakeObjectStorage:
    """In-memory stand-in for the remote object storage REST API."""

    def __init__(self, endpoint: str = REMOTE_ENDPOINT, bucket: str = REMOTE_BUCKET) -> None:
        self.base_path = httpx.URL(endpoint).path.rstrip("/")
        self.bucket = bucket
        self.objects: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.failures: dict[str, tuple[int, str]] = {}

    def fail(self, operation: str, status: int, body: str = "") -> None:
        """Make every request for an operation (upload/download/delete/list) fail."""
        self.failures[operation] = (status, body)

    def _operation(self, request: httpx.Request, rest: str) -> str:
        if request.method == "POST" and rest.startswith("list/"):
            return "list"
        return {"POST": "upload", "GET": "download", "DELETE": "delete"}[request.method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        rest = request.url.path[len(f"{self.base_path}/object/"):]
        operation = self._operation(request, rest)

        if operation in self.failures:
            status, body = self.failures[operation]
            return httpx.Response(status, text=body)

        if operation == "list":
            return self._list(json.loads(request.content or b"{}"))

        key = rest[len(self.bucket) + 1:]
        if operation == "upload":
            self.objects[key] = {
                "content": request.content,
                "content_type": request.headers.get("content-type"),
                "cache_control": request.headers.get("cache-control"),
            }
            return httpx.Response(200, json={"Key": f"{self.bucket}/{key}"})

        if key not in self.objects:
            return httpx.Response(404, json={"error": "not_found"})

        if operation == "delete":
            del self.objects[key]
            return httpx.Response(200, json=[{"name": key}])

        stored = self.objects[key]
        headers = {
            "content-type": stored["content_type"] or "application/octet-stream",
            "etag": f'"{len(stored["content"])}"',
            "last-modified": "Sat, 17 Oct 2026 12:00:00 GMT",
        }
        if stored["cache_control"]:
            headers["cache-control"] = stored["cache_control"]
        return httpx.Response(200, content=stored["content"], headers=headers)

    def _list(self, body: dict[str, Any]) -> httpx.Response:
        prefix = body.get("prefix", "")
        limit = body.get("limit", 100)
        folder = prefix if not prefix or prefix.endswith("/") else f"{prefix}/"
        rows = []
        for key in sorted(self.objects):
            if not key.startswith(folder):
                continue
            rows.append(
                {
                    "name": key[len(folder):],
                    "updated_at": "2026-10-17T12:00:00Z",
                    "metadata": {"size": len(self.objects[key]["content"])},
                }
            )
        return httpx.Response(200, json={"data": rows[:limit]})


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture
def memory_settings() -> Settings:
    """Settings selecting the memory backend."""
    return make_settings(storage_mode="memory")


@pytest.fixture
def remote_settings() -> Settings:
    """Settings selecting a fully configured remote backend."""
    return make_settings(
        storage_mode="remote",
        storage_endpoint_url=REMOTE_ENDPOINT,
        storage_bucket=REMOTE_BUCKET,
        storage_service_key=REMOTE_SERVICE_KEY,
    )


# =============================================================================
# Blob stores
# =============================================================================


@pytest.fixture
def fake_remote() -> FakeObjectStorage:
    """Fake remote object storage API."""
    return FakeObjectStorage()


@pytest_asyncio.fixture
async def memory_store(memory_settings: Settings) -> AsyncGenerator[BlobStore, None]:
    """Blob store in memory mode."""
    store = BlobStore(settings_provider=SettingsHolder(memory_settings))
    yield store
    await store.aclose()


@pytest_asyncio.fixture
async def remote_store(
    remote_settings: Settings,
    fake_remote: FakeObjectStorage,
) -> AsyncGenerator[BlobStore, None]:
    """Blob store in remote mode, talking to the fake API."""
    store = BlobStore(
        settings_provider=SettingsHolder(remote_settings),
        transport=httpx.MockTransport(fake_remote.handler),
    )
    yield store
    await store.aclose()


@pytest.fixture
def store_factory() -> Callable[..., BlobStore]:
    """Build a blob store from a settings holder and optional mock handler."""

    def factory(
        holder: SettingsHolder,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> BlobStore:
        transport = httpx.MockTransport(handler) if handler else None
        return BlobStore(settings_provider=holder, transport=transport)

    return factory


# =============================================================================
# Test client
# =============================================================================


@pytest_asyncio.fixture
async def client(
    memory_settings: Settings,
    memory_store: BlobStore,
) -> AsyncGenerator[AsyncClient, None]:
    """Test client against an app in memory mode."""
    app = create_app(memory_settings, blob_store=memory_store)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
