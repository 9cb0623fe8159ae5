"""Abstract storage backend interface for meeting artifacts."""

import re
from abc import ABC, abstractmethod
from typing import BinaryIO


class StorageBackend(ABC):
    """Abstract base class for durable artifact storage."""

    def get_object_key(self, organization_id: str, upload_id: str, file_name: str) -> str:
        """Build the tenant-scoped object key for an assembled upload.

        Args:
            organization_id: Tenant owning the artifact
            upload_id: Upload session identifier, unique per upload
            file_name: Original file name

        Returns:
            Object key of the form ``<organization_id>/<upload_id>_<file_name>``
        """
        return f"{organization_id}/{upload_id}_{self._sanitize_filename(file_name)}"

    @abstractmethod
    async def store_file(self, object_key: str, content_type: str, file_data: BinaryIO) -> str:
        """Store a file under ``object_key``. Never overwrites.

        Args:
            object_key: Key returned by ``get_object_key``
            content_type: MIME type
            file_data: File content stream

        Returns:
            Final storage location (URI or filesystem path)
        """
        pass

    @abstractmethod
    async def remove_file(self, object_key: str) -> None:
        """Delete a stored object."""
        pass

    @abstractmethod
    def file_exists(self, object_key: str) -> bool:
        """Check whether an object exists."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass

    @staticmethod
    def _sanitize_filename(filename: str) -> str:
        """Remove path traversal and dangerous characters."""
        safe = filename.replace("../", "").replace("..\\", "")
        safe = safe.replace("/", "_").replace("\\", "_")
        safe = re.sub(r"[^a-zA-Z0-9._-]", "_", safe)
        return safe[:255]
