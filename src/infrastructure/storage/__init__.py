"""
Durable slot storage for the workout log.

Supports local files, R2 (Cloudflare) and S3 via S3-compatible API.
Includes mock mode for local development without a disk path or bucket.
"""

from .client import (
    FileKeyValueStore,
    KeyValueStore,
    MockKeyValueStore,
    R2StorageClient,
    StorageConfig,
    StorageError,
    create_storage_client,
)

__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "MockKeyValueStore",
    "R2StorageClient",
    "StorageConfig",
    "StorageError",
    "create_storage_client",
]
