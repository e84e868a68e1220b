"""
FastAPI dependencies for route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request

from src.services.storage import BlobStore


def get_store(request: Request) -> BlobStore:
    """Return the blob store attached to the application."""
    return request.app.state.blob_store


BlobStoreDep = Annotated[BlobStore, Depends(get_store)]
