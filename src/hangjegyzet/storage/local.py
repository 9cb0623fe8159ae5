"""Local filesystem storage backend."""

import asyncio
from pathlib import Path
from typing import BinaryIO

from hangjegyzet.core.config import settings
from hangjegyzet.storage.base import StorageBackend


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage backend."""

    def __init__(self, base_path: str | Path | None = None):
        self.base_path = Path(base_path or settings.LOCAL_STORAGE_PATH)

    def _resolve(self, object_key: str) -> Path:
        return self.base_path / object_key

    def _write(self, target_path: Path, file_data: BinaryIO) -> None:
        # "xb" raises FileExistsError if the object is already there
        with open(target_path, "xb") as f:
            try:
                while chunk := file_data.read(65536):  # 64KB chunks
                    f.write(chunk)
            except BaseException:
                f.close()
                target_path.unlink(missing_ok=True)
                raise

    async def store_file(self, object_key: str, content_type: str, file_data: BinaryIO) -> str:
        """Write file to local filesystem, refusing to overwrite.

        A failed write leaves nothing behind under ``object_key``.
        """
        target_path = self._resolve(object_key)
        target_path.parent.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(self._write, target_path, file_data)

        return str(target_path)

    async def remove_file(self, object_key: str) -> None:
        self._resolve(object_key).unlink(missing_ok=True)

    def file_exists(self, object_key: str) -> bool:
        return self._resolve(object_key).is_file()

    def get_backend_name(self) -> str:
        return "local"


# Singleton instance
local_backend = LocalStorageBackend()
