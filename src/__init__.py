"""
Session Recorder API - Blob storage for recorded sessions.

This package provides:
- A blob store with in-memory and remote object storage backends
- Proxy URLs and paged listings over stored blobs
- Storage health and diagnostics endpoints
"""

__version__ = "1.0.0"
