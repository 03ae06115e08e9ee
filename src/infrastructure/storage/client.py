"""
Key-value storage clients for the persisted workout slot.

The workout log lives in a single string-keyed slot holding a JSON document.
Three backends implement the same small protocol:
- MockKeyValueStore: in-memory, for local development and tests
- FileKeyValueStore: one JSON file per key on local disk
- R2StorageClient: one object per key in Cloudflare R2 (S3-compatible)

Clients raise StorageError on backend failures. Deciding what a failure
means for the user is the repository's job, not the client's.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """Configuration for R2/S3-compatible storage."""
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 uses 'auto' for region
    prefix: str = "mapty/"


class KeyValueStore(Protocol):
    """
    Protocol for a durable string slot store.

    Mirrors what a browser's localStorage offers: get, set, and delete a
    string value by key. get returns None for a missing key.
    """

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, overwriting any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Delete key. Deleting a missing key is not an error."""
        ...


class R2StorageClient:
    """
    Cloudflare R2 key-value client.

    Uses boto3 because R2 is S3-compatible. Each key maps to one object
    under the configured prefix, so actual S3 or MinIO work the same way.
    """

    def __init__(self, config: StorageConfig, s3_client=None) -> None:
        """
        Initialize R2 client with boto3.

        boto3 is imported here rather than at module level so mock and
        file modes don't need it. Tests can pass a ready s3_client.
        """
        self._config = config

        if s3_client is None:
            try:
                import boto3
                from botocore.config import Config
            except ImportError:
                raise ImportError(
                    "boto3 is required for R2 storage. Install with: pip install boto3"
                )

            # R2 requires v4 signatures and has specific endpoint patterns
            boto_config = Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'},
            )

            s3_client = boto3.client(
                's3',
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                region_name=config.region,
                config=boto_config,
            )

        self._s3_client = s3_client

        logger.info(
            "Initialized R2 storage client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
            }
        )

    def get(self, key: str) -> Optional[str]:
        """Download the object for key, or None if it doesn't exist."""
        object_key = self._build_object_key(key)

        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=object_key,
            )
            return response['Body'].read().decode('utf-8')

        except Exception as e:
            if _is_missing_key_error(e):
                return None
            logger.error(
                "Failed to read slot",
                extra={"key": object_key, "error": str(e)}
            )
            raise StorageError(f"Read failed: {e}")

    def set(self, key: str, value: str) -> None:
        object_key = self._build_object_key(key)

        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=object_key,
                Body=value.encode('utf-8'),
                ContentType='application/json',
            )

            logger.debug(
                "Wrote slot",
                extra={"key": object_key, "size_bytes": len(value)}
            )

        except Exception as e:
            logger.error(
                "Failed to write slot",
                extra={"key": object_key, "error": str(e)}
            )
            raise StorageError(f"Write failed: {e}")

    def delete(self, key: str) -> None:
        object_key = self._build_object_key(key)

        try:
            self._s3_client.delete_object(
                Bucket=self._config.bucket_name,
                Key=object_key,
            )

            logger.debug("Deleted slot", extra={"key": object_key})

        except Exception as e:
            logger.error(
                "Failed to delete slot",
                extra={"key": object_key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

    def _build_object_key(self, key: str) -> str:
        """Build the object key for a slot: {prefix}{key}.json"""
        return f"{self._config.prefix}{key}.json"


def _is_missing_key_error(error: Exception) -> bool:
    """True for botocore's NoSuchKey / 404 client errors."""
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return False
    code = str(response.get("Error", {}).get("Code", ""))
    return code in ("NoSuchKey", "404", "NotFound")


# ---------------------------------------------------------------------------
# File Storage
# ---------------------------------------------------------------------------

class FileKeyValueStore:
    """
    Slot store backed by JSON files in a local directory.

    Each key is one file named {key}.json. Writes go to a temp file
    first and are moved into place, so a crash mid-write never leaves a
    half-written slot behind.
    """

    _KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        logger.info(
            "Initialized file storage client",
            extra={"directory": str(self._directory)}
        )

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.error(
                "Failed to read slot",
                extra={"path": str(path), "error": str(e)}
            )
            raise StorageError(f"Read failed: {e}")

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory, prefix=f".{key}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error(
                "Failed to write slot",
                extra={"path": str(path), "error": str(e)}
            )
            raise StorageError(f"Write failed: {e}")

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(
                "Failed to delete slot",
                extra={"path": str(path), "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

    def _path_for(self, key: str) -> Path:
        if not self._KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockKeyValueStore:
    """
    In-memory slot store for local development.

    Enables running the full API without a disk path or a bucket.
    Values vanish when the process exits.
    """

    def __init__(self) -> None:
        self._slots: dict[str, str] = {}
        logger.info("Initialized mock storage client (in-memory)")

    def get(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    def set(self, key: str, value: str) -> None:
        self._slots[key] = value
        logger.debug(
            "Stored slot in mock storage",
            extra={"key": key, "size_bytes": len(value)}
        )

    def delete(self, key: str) -> None:
        self._slots.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._slots


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    backend: str = "memory",
    config: Optional[StorageConfig] = None,
    directory: Optional[Path] = None,
) -> KeyValueStore:
    """
    Create a storage client for the configured backend.

    Args:
        backend: "memory", "file", or "r2"
        config: R2 configuration (required for "r2")
        directory: Directory for slot files (required for "file")

    Returns:
        KeyValueStore implementation
    """
    if backend == "memory":
        return MockKeyValueStore()

    if backend == "file":
        if directory is None:
            raise ValueError("directory is required for file storage")
        return FileKeyValueStore(directory)

    if backend == "r2":
        if config is None:
            raise ValueError("config is required for r2 storage")
        return R2StorageClient(config)

    raise ValueError(f"Unknown storage backend: {backend}")

