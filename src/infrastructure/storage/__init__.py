"""
Object storage integration for uploaded videos and thumbnails.

Supports S3 and S3-compatible stores via boto3, plus mock mode for local
development without credentials, and an in-process thumbnail store for the
degraded serving path.
"""

from .client import (
    MockObjectStore,
    ObjectStore,
    S3ObjectStore,
    StorageConfig,
    StorageError,
    create_object_store,
)
from .thumbnails import InMemoryThumbnailStore, StoredThumbnail, ThumbnailStore

__all__ = [
    "MockObjectStore",
    "ObjectStore",
    "S3ObjectStore",
    "StorageConfig",
    "StorageError",
    "create_object_store",
    "InMemoryThumbnailStore",
    "StoredThumbnail",
    "ThumbnailStore",
]
