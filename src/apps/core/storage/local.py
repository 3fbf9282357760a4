"""
Local filesystem storage backend for development.
"""

import shutil
from pathlib import Path
from typing import Optional

from django.conf import settings

from .base import StorageBackend, StorageError


class LocalFilesystemStorage(StorageBackend):
    """
    Local filesystem storage backend.
    Used for development and testing.
    """

    def __init__(self, base_path: Optional[str | Path] = None):
        """
        Initialize local storage.

        Args:
            base_path: Base directory for stored objects.
                      Defaults to settings.DATA_DIR / 'archive'
        """
        if base_path:
            self.base_path = Path(base_path)
        else:
            self.base_path = getattr(settings, 'DATA_DIR', Path.cwd() / 'data') / 'archive'

        self.bucket_name = self.base_path.name
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Get full filesystem path for a key."""
        # Sanitize key to prevent path traversal
        safe_key = key.replace('..', '').lstrip('/')
        return self.base_path / safe_key

    def put_content(
        self,
        content: bytes | str,
        key: str,
        content_type: str = 'application/octet-stream',
    ) -> str:
        file_path = self._get_full_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, 'wb') as f:
            f.write(self.to_bytes(content))

        return key

    def put_file(
        self,
        local_path: str | Path,
        key: str,
        content_type: Optional[str] = None,
    ) -> str:
        file_path = self._get_full_path(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            shutil.copyfile(local_path, file_path)
        except OSError as e:
            raise StorageError(f"Copy of {local_path} to {key} failed: {e}", key=key) from e

        return key

    def exists(self, key: str) -> bool:
        return self._get_full_path(key).exists()

    def check_bucket(self) -> None:
        if not self.base_path.is_dir():
            raise StorageError(f"Archive directory {self.base_path} does not exist")

    def ensure_bucket(self) -> bool:
        if self.base_path.exists():
            return False
        self.base_path.mkdir(parents=True, exist_ok=True)
        return True
