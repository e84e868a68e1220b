"""
Diagnostics API router.

Storage status and an end-to-end write/read/delete probe for operators.
"""

import json
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from src.api.dependencies import BlobStoreDep
from src.core.exceptions import StorageError
from src.core.logging import get_logger, serialize_error
from src.models.storage import (
    BlobStatusResponse,
    FlowDiagnostics,
    FlowStep,
    StorageDiagnosticsResponse,
    StorageEnvironment,
    StorageHealth,
)

router = APIRouter(prefix="/api", tags=["Diagnostics"])

logger = get_logger("diagnostics.storage")

PROBE_CACHE_SECONDS = 30


@router.get(
    "/debug/blob-status",
    response_model=BlobStatusResponse,
    summary="Blob status",
    description="Report storage configuration and backend health.",
)
async def blob_status(store: BlobStoreDep) -> BlobStatusResponse:
    """Return storage environment and health."""
    env = store.get_blob_environment()
    health = await store.blob_health()
    return BlobStatusResponse(
        env=StorageEnvironment.from_environment(env),
        health=StorageHealth.from_report(health),
    )


async def _run_step(
    steps: list[FlowStep],
    step_id: str,
    label: str,
    action: Callable[[], Awaitable[Any]],
) -> Any:
    """Run one probe step, record its outcome and return the action's result."""
    started = time.perf_counter()
    try:
        result = await action()
    except StorageError as e:
        steps.append(
            FlowStep(
                id=step_id,
                label=label,
                ok=False,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=e.message,
                details=serialize_error(e),
            )
        )
        logger.error("storage_probe_step_failed", step=step_id, error=serialize_error(e))
        return None

    steps.append(
        FlowStep(
            id=step_id,
            label=label,
            ok=True,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    )
    return result


@router.get(
    "/diagnostics/storage",
    response_model=StorageDiagnosticsResponse,
    summary="Storage diagnostics",
    description="Upload, read back and delete a probe object in the active backend.",
    responses={500: {"model": StorageDiagnosticsResponse}},
)
async def storage_diagnostics(store: BlobStoreDep) -> JSONResponse:
    """Run the storage probe."""
    env = store.get_blob_environment()
    health = await store.blob_health()
    logger.info("storage_probe_start", provider=env.provider, health_ok=health.ok)

    probe_id = str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()
    diagnostics = FlowDiagnostics(probe_id=probe_id, started_at=started_at, mode=env.provider)

    def respond() -> JSONResponse:
        diagnostics.ok = bool(diagnostics.steps) and all(step.ok for step in diagnostics.steps)
        body = StorageDiagnosticsResponse(
            ok=diagnostics.ok,
            env=StorageEnvironment.from_environment(env),
            health=StorageHealth.from_report(health),
            diagnostics=diagnostics,
        )
        logger.info("storage_probe_complete", probe_id=probe_id, ok=diagnostics.ok)
        return JSONResponse(
            status_code=200 if diagnostics.ok else 500,
            content=body.model_dump(mode="json"),
        )

    if not env.configured or env.error:
        diagnostics.steps.append(
            FlowStep(
                id="storage-unconfigured",
                label="Storage configuration check",
                ok=False,
                error=(env.error or {}).get("message") or "Storage is not configured.",
                details=env.error or env.to_dict(),
            )
        )
        return respond()

    path = f"diagnostics/{probe_id}/probe.json"
    payload = json.dumps({"probeId": probe_id, "startedAt": started_at}, indent=2).encode("utf-8")

    uploaded = await _run_step(
        diagnostics.steps,
        "upload",
        "Upload diagnostic payload",
        lambda: store.put_blob_from_buffer(
            path,
            payload,
            "application/json",
            cache_control_max_age=PROBE_CACHE_SECONDS,
        ),
    )
    if uploaded is None:
        return respond()

    read_started = time.perf_counter()
    record = await _run_step(
        diagnostics.steps,
        "read",
        "Read diagnostic payload",
        lambda: store.read_blob(path),
    )
    if not diagnostics.steps[-1].ok:
        return respond()
    if record is None:
        diagnostics.steps[-1] = FlowStep(
            id="read",
            label="Read diagnostic payload",
            ok=False,
            duration_ms=round((time.perf_counter() - read_started) * 1000, 2),
            error="Read succeeded but returned no data.",
        )
        return respond()
    diagnostics.steps[-1].details = {"bytes": len(record.buffer)}

    await _run_step(
        diagnostics.steps,
        "delete",
        "Delete diagnostic payload",
        lambda: store.delete_blob(path),
    )
    return respond()
