"""
Blob facade tests: mode resolution, memory-mode operations and environment reporting.
"""

import re

import pytest

from src.core.exceptions import ConfigurationError, ValidationError
from src.services.storage import BlobStore, StorageMode, resolve_mode
from tests.conftest import REMOTE_BUCKET, SettingsHolder, make_settings


# =============================================================================
# Mode resolution
# =============================================================================


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("memory", StorageMode.MEMORY),
        ("MEMORY", StorageMode.MEMORY),
        (" Remote ", StorageMode.REMOTE),
    ],
)
def test_resolve_mode_case_insensitive(raw, expected):
    """Recognized modes match regardless of case and padding."""
    assert resolve_mode(make_settings(storage_mode=raw)) is expected


def test_resolve_mode_missing_fails_closed():
    """A missing mode is a ConfigurationError naming STORAGE_MODE."""
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_mode(make_settings())
    assert exc_info.value.missing_keys == ["STORAGE_MODE"]
    assert "STORAGE_MODE" in exc_info.value.message


def test_resolve_mode_unknown_value_fails_closed():
    """Unknown modes are rejected."""
    with pytest.raises(ConfigurationError) as exc_info:
        resolve_mode(make_settings(storage_mode="supabase"))
    assert "STORAGE_MODE" in exc_info.value.message
    assert "supabase" in exc_info.value.message


@pytest.mark.asyncio
async def test_operations_fail_without_mode(store_factory):
    """Every operation except health/environment raises when unconfigured."""
    store = store_factory(SettingsHolder(make_settings()))

    with pytest.raises(ConfigurationError):
        await store.put_blob_from_buffer("a.json", b"{}", "application/json")
    with pytest.raises(ConfigurationError):
        await store.read_blob("a.json")
    with pytest.raises(ConfigurationError):
        await store.list_blobs()

    report = await store.blob_health()
    assert report.ok is False
    assert report.mode is None
    assert "STORAGE_MODE" in report.reason


@pytest.mark.asyncio
async def test_mode_switch_takes_effect_per_call(store_factory, memory_settings):
    """Changing settings switches backends without rebuilding the store."""
    holder = SettingsHolder(memory_settings)
    store = store_factory(holder)
    await store.put_blob_from_buffer("a.json", b"{}", "application/json")

    holder.settings = make_settings(storage_mode="remote")
    with pytest.raises(ConfigurationError):
        await store.read_blob("a.json")

    holder.settings = memory_settings
    assert (await store.read_blob("a.json")).buffer == b"{}"


# =============================================================================
# Memory mode
# =============================================================================


@pytest.mark.asyncio
async def test_session_scenario(memory_store: BlobStore):
    """Put, list, read, delete, read again."""
    data = b'{"ok": true}'
    result = await memory_store.put_blob_from_buffer("sessions/x/a.json", data, "application/json")
    assert result.url == "/api/blob/sessions/x/a.json"
    assert result.download_url == result.url

    listing = await memory_store.list_blobs(prefix="sessions/x/")
    assert [blob.pathname for blob in listing.blobs] == ["sessions/x/a.json"]
    assert listing.blobs[0].url == result.url
    assert listing.blobs[0].size == len(data)
    assert listing.has_more is False

    record = await memory_store.read_blob("sessions/x/a.json")
    assert record.buffer == data
    assert record.content_type == "application/json"

    assert await memory_store.delete_blob("sessions/x/a.json") is True
    assert await memory_store.read_blob("sessions/x/a.json") is None
    assert await memory_store.delete_blob("sessions/x/a.json") is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("key", "payload", "content_type"),
    [
        ("a.bin", bytes(range(256)), "application/octet-stream"),
        ("/nested/deep/path/empty.txt", b"", "text/plain"),
        ("sessions/ünïcode name.json", "héllo".encode(), "application/json; charset=utf-8"),
    ],
)
async def test_round_trip(memory_store: BlobStore, key, payload, content_type):
    """Read after put returns identical bytes and content type."""
    result = await memory_store.put_blob_from_buffer(key, payload, content_type)

    record = await memory_store.read_blob(result.url)
    assert record.buffer == payload
    assert record.content_type == content_type


@pytest.mark.asyncio
async def test_read_unresolvable_input_returns_none(memory_store: BlobStore):
    """Data URIs and foreign URLs are skipped."""
    assert await memory_store.read_blob("data:image/png;base64,AAAA") is None
    assert await memory_store.read_blob("https://example.com/pic.png") is None


@pytest.mark.asyncio
async def test_empty_path_rejected(memory_store: BlobStore):
    """An empty key cannot be written."""
    with pytest.raises(ValidationError):
        await memory_store.put_blob_from_buffer("///", b"x", "text/plain")


@pytest.mark.asyncio
async def test_random_suffix_keys_differ(memory_store: BlobStore):
    """Two suffixed writes to the same path never collide."""
    first = await memory_store.put_blob_from_buffer(
        "sessions/x/audio.webm", b"1", "audio/webm", add_random_suffix=True
    )
    second = await memory_store.put_blob_from_buffer(
        "sessions/x/audio.webm", b"2", "audio/webm", add_random_suffix=True
    )

    assert first.pathname != second.pathname
    assert re.fullmatch(r"sessions/x/audio-[0-9a-z]+-[0-9a-z]+\.webm", first.pathname)
    assert (await memory_store.read_blob(first.url)).buffer == b"1"
    assert (await memory_store.read_blob(second.url)).buffer == b"2"


@pytest.mark.asyncio
async def test_cache_control_recorded(memory_store: BlobStore):
    """cache_control_max_age becomes a Cache-Control value."""
    await memory_store.put_blob_from_buffer("a.json", b"{}", "application/json", cache_control_max_age=30)
    record = await memory_store.read_blob("a.json")
    assert record.cache_control == "public, max-age=30"


@pytest.mark.asyncio
async def test_prefix_filtering(memory_store: BlobStore):
    """Listings never include keys outside the prefix."""
    for key in ("a/1", "a/2", "ab/3", "b/a/4"):
        await memory_store.put_blob_from_buffer(key, b"x", "text/plain")

    listing = await memory_store.list_blobs(prefix="a/")
    assert [blob.pathname for blob in listing.blobs] == ["a/1", "a/2"]


@pytest.mark.asyncio
async def test_pagination_exhaustive(memory_store: BlobStore):
    """Following cursors returns every key once, sorted."""
    keys = [f"sessions/s{index:02d}/turn.json" for index in range(17)]
    for key in reversed(keys):
        await memory_store.put_blob_from_buffer(key, b"{}", "application/json")

    collected: list[str] = []
    cursor = None
    pages = 0
    while True:
        page = await memory_store.list_blobs(prefix="sessions/", limit=5, cursor=cursor)
        pages += 1
        collected.extend(blob.pathname for blob in page.blobs)
        if not page.has_more:
            assert page.cursor is None
            break
        cursor = page.cursor

    assert collected == keys
    assert pages == 4


@pytest.mark.asyncio
async def test_delete_by_prefix(memory_store: BlobStore):
    """Prefix deletion counts removed blobs."""
    for key in ("sessions/x/a", "sessions/x/b", "sessions/y/c"):
        await memory_store.put_blob_from_buffer(key, b"x", "text/plain")

    assert await memory_store.delete_blobs_by_prefix("/sessions/x/") == 2
    remaining = await memory_store.list_blobs()
    assert [blob.pathname for blob in remaining.blobs] == ["sessions/y/c"]


@pytest.mark.asyncio
async def test_clear_memory_blobs(memory_store: BlobStore):
    """clear_memory_blobs empties the store."""
    await memory_store.put_blob_from_buffer("a", b"x", "text/plain")
    memory_store.clear_memory_blobs()
    assert (await memory_store.list_blobs()).blobs == []


@pytest.mark.asyncio
async def test_public_base_url_applies_to_results(store_factory):
    """Proxy URLs follow the configured override."""
    holder = SettingsHolder(
        make_settings(storage_mode="memory", public_storage_base_url="https://cdn.example.com/blobs")
    )
    store = store_factory(holder)

    result = await store.put_blob_from_buffer("sessions/a.json", b"{}", "application/json")
    assert result.url == "https://cdn.example.com/blobs/sessions/a.json"
    assert (await store.read_blob(result.url)).buffer == b"{}"


# =============================================================================
# Health & environment
# =============================================================================


@pytest.mark.asyncio
async def test_memory_health(memory_store: BlobStore):
    """Memory mode is always healthy."""
    report = await memory_store.blob_health()
    assert report.ok is True
    assert report.mode is StorageMode.MEMORY
    assert report.bucket is None


@pytest.mark.asyncio
async def test_environment_memory_mode(memory_store: BlobStore):
    """Memory mode is configured without any credentials."""
    env = memory_store.get_blob_environment()
    assert env.provider == "memory"
    assert env.configured is True
    assert env.bucket is None
    assert env.error is None
    assert env.diagnostics["mode"] == "memory"


@pytest.mark.asyncio
async def test_environment_remote_mode(remote_store: BlobStore):
    """A complete remote configuration reports the bucket."""
    env = remote_store.get_blob_environment()
    assert env.provider == "remote"
    assert env.configured is True
    assert env.bucket == REMOTE_BUCKET
    assert env.diagnostics["service_key"] == "16 chars"


@pytest.mark.parametrize(
    "missing",
    ["storage_endpoint_url", "storage_bucket", "storage_service_key"],
)
def test_environment_remote_missing_credential(store_factory, remote_settings, missing):
    """Any missing credential is reported, not raised."""
    settings = remote_settings.model_copy(update={missing: None})
    store = store_factory(SettingsHolder(settings))

    env = store.get_blob_environment()
    assert env.configured is False
    assert env.error is not None
    assert env.error["code"] == "STORAGE_NOT_CONFIGURED"
    assert missing.upper() in env.error["message"]


def test_environment_without_mode(store_factory):
    """An unresolved mode yields an unknown provider."""
    store = store_factory(SettingsHolder(make_settings()))

    env = store.get_blob_environment()
    assert env.provider == "unknown"
    assert env.configured is False
    assert env.error["details"]["missing_keys"] == ["STORAGE_MODE"]


# =============================================================================
# Empty keys
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["", "/", "///"])
async def test_delete_empty_path_rejected(memory_store: BlobStore, path):
    """An empty key cannot be deleted."""
    with pytest.raises(ValidationError):
        await memory_store.delete_blob(path)


@pytest.mark.asyncio
async def test_remote_delete_empty_path_sends_nothing(remote_store: BlobStore, fake_remote):
    """An empty key never reaches the bucket root."""
    with pytest.raises(ValidationError):
        await remote_store.delete_blob("/")
    assert fake_remote.requests == []
