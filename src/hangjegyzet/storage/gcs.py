"""Google Cloud Storage backend."""

import asyncio
from typing import BinaryIO, Optional

from google.cloud import storage
from google.cloud.exceptions import NotFound

from hangjegyzet.core.config import settings
from hangjegyzet.storage.base import StorageBackend


class GCSStorageBackend(StorageBackend):
    """Google Cloud Storage backend."""

    def __init__(self):
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not settings.GCS_BUCKET_NAME:
                raise ValueError("GCS_BUCKET_NAME not configured")

            self._client = storage.Client(project=settings.GCP_PROJECT_ID or None)
            self._bucket = self._client.bucket(settings.GCS_BUCKET_NAME)

        return self._bucket

    async def store_file(self, object_key: str, content_type: str, file_data: BinaryIO) -> str:
        """Upload file to GCS. Fails if the object already exists."""
        bucket = self._get_bucket()
        blob = bucket.blob(object_key)

        blob.content_type = content_type
        # if_generation_match=0 makes the upload create-only
        await asyncio.to_thread(
            blob.upload_from_file,
            file_data,
            rewind=True,
            content_type=content_type,
            if_generation_match=0,
        )

        return f"gs://{settings.GCS_BUCKET_NAME}/{object_key}"

    async def remove_file(self, object_key: str) -> None:
        bucket = self._get_bucket()
        try:
            bucket.blob(object_key).delete()
        except NotFound:
            pass

    def file_exists(self, object_key: str) -> bool:
        """Check if file exists in GCS."""
        bucket = self._get_bucket()
        return bucket.blob(object_key).exists()

    def get_backend_name(self) -> str:
        return "gcs"


# Singleton instance
gcs_backend = GCSStorageBackend()
