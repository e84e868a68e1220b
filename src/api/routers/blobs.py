"""
Blob API router.

Serves stored blobs behind the proxy URL scheme and exposes paged listings.
"""

from fastapi import APIRouter, Query, Response

from src.api.dependencies import BlobStoreDep
from src.core.exceptions import BlobNotFoundError
from src.models.storage import BlobListResponse

router = APIRouter(prefix="/api", tags=["Blobs"])


@router.get(
    "/blob/{path:path}",
    summary="Fetch blob",
    description="Return the stored blob addressed by a proxy URL.",
    responses={404: {"description": "Blob not found"}},
)
async def get_blob(path: str, store: BlobStoreDep) -> Response:
    """Stream a stored blob back with its recorded headers."""
    record = await store.read_blob(path)
    if record is None:
        raise BlobNotFoundError(path)

    headers: dict[str, str] = {}
    if record.cache_control:
        headers["Cache-Control"] = record.cache_control
    if record.etag:
        headers["ETag"] = record.etag
    if record.uploaded_at:
        headers["X-Uploaded-At"] = record.uploaded_at

    return Response(
        content=record.buffer,
        media_type=record.content_type,
        headers=headers,
    )


@router.get(
    "/blobs",
    response_model=BlobListResponse,
    summary="List blobs",
    description="List stored blobs under a prefix, one page at a time.",
)
async def list_blobs(
    store: BlobStoreDep,
    prefix: str = Query("", description="Key prefix filter"),
    limit: int = Query(100, ge=1, le=1000, description="Page size"),
    cursor: str | None = Query(None, description="Cursor from the previous page"),
) -> BlobListResponse:
    """List blobs."""
    result = await store.list_blobs(prefix=prefix, limit=limit, cursor=cursor)
    return BlobListResponse.from_result(result)
