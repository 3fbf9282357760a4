"""
Base storage abstraction for the archive object store.
"""

import hashlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional


class StorageError(Exception):
    """Raised when the object store rejects or fails a request."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class StorageBackend(ABC):
    """
    Abstract base class for archive storage backends.

    The migration engine relies only on overwrite semantics: putting the
    same key twice replaces the object, so every put is safe to repeat.
    """

    bucket_name: str = ''

    @abstractmethod
    def put_content(
        self,
        content: bytes | str,
        key: str,
        content_type: str = 'application/octet-stream',
    ) -> str:
        """
        Store in-memory content under a key.

        Args:
            content: Bytes or text to store (text is encoded as UTF-8)
            key: Storage key/path for the object
            content_type: MIME type of the content

        Returns:
            The key the content was stored under
        """
        pass

    @abstractmethod
    def put_file(
        self,
        local_path: str | Path,
        key: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Store a local file under a key.

        Args:
            local_path: Path of the file on local disk
            key: Storage key/path for the object
            content_type: Optional MIME type; backends may guess it

        Returns:
            The key the file was stored under
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if an object exists in storage."""
        pass

    def check_bucket(self) -> None:
        """Raise StorageError if the bucket cannot be reached."""
        return None

    def ensure_bucket(self) -> bool:
        """
        Make sure the bucket exists.

        Returns:
            True if the bucket had to be created
        """
        return False

    @staticmethod
    def to_bytes(content: bytes | str) -> bytes:
        if isinstance(content, str):
            return content.encode('utf-8')
        return content

    @staticmethod
    def compute_sha256(data: bytes) -> str:
        """Compute SHA-256 hash of data."""
        return hashlib.sha256(data).hexdigest()


def get_storage_backend() -> StorageBackend:
    """
    Factory function to get the appropriate storage backend
    based on environment configuration.

    Returns:
        StorageBackend instance (LocalFilesystemStorage or ObjectStorage)
    """
    from django.conf import settings

    storage_type = getattr(settings, 'ARCHIVE_STORAGE_BACKEND', 's3')

    if storage_type == 'local':
        from .local import LocalFilesystemStorage
        storage_path = getattr(settings, 'ARCHIVE_STORAGE_PATH', None)
        return LocalFilesystemStorage(base_path=storage_path)
    elif storage_type in ('s3', 'minio', 'r2', 'object'):
        from .object_storage import ObjectStorage
        return ObjectStorage(
            endpoint_url=getattr(settings, 'ARCHIVE_S3_ENDPOINT', None),
            bucket_name=getattr(settings, 'ARCHIVE_S3_BUCKET', 'email-migration'),
            access_key=getattr(settings, 'ARCHIVE_S3_ACCESS_KEY', None),
            secret_key=getattr(settings, 'ARCHIVE_S3_SECRET_KEY', None),
            region=getattr(settings, 'ARCHIVE_S3_REGION', 'us-east-1'),
            server_side_encryption=getattr(settings, 'ARCHIVE_S3_SERVER_SIDE_ENCRYPTION', 'AES256'),
        )
    else:
        raise ValueError(f"Unknown storage backend: {storage_type}")
