"""
Storage abstraction for Email Archive.
Provides unified interface for local and object storage (S3/MinIO/R2).
"""

from .base import StorageBackend, StorageError, get_storage_backend
from .local import LocalFilesystemStorage
from .object_storage import ObjectStorage

__all__ = [
    'StorageBackend',
    'StorageError',
    'LocalFilesystemStorage',
    'ObjectStorage',
    'get_storage_backend',
]
