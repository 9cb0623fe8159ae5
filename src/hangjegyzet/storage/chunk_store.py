"""Filesystem holding area for uploaded chunks.

Chunks live under ``<root>/<upload_id>/chunk_<index:06d>``; the assembled
file is written next to the session directory as ``<upload_id>_final``.
"""

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Iterable

from hangjegyzet.core.config import settings

logger = logging.getLogger(__name__)

CHUNK_NAME_PREFIX = "chunk_"


def chunk_file_name(index: int) -> str:
    return f"{CHUNK_NAME_PREFIX}{index:06d}"


class ChunkStore:
    """Session-scoped chunk files on the local filesystem."""

    def __init__(self, root: str | Path | None = None, buffer_size: int | None = None):
        self.root = Path(root or settings.TEMP_UPLOAD_DIR)
        self.buffer_size = buffer_size or settings.assembly_buffer_bytes

    def session_dir(self, upload_id: str) -> Path:
        return self.root / upload_id

    def chunk_path(self, upload_id: str, index: int) -> Path:
        return self.session_dir(upload_id) / chunk_file_name(index)

    def assembled_path(self, upload_id: str) -> Path:
        return self.root / f"{upload_id}_final"

    def save_chunk(
        self, upload_id: str, index: int, data: BinaryIO, max_bytes: int | None = None
    ) -> int:
        """Stream one chunk to disk, replacing any earlier copy of the same index.

        Args:
            upload_id: Upload session identifier
            index: Zero-based chunk index
            data: Chunk content stream
            max_bytes: Reject chunks larger than this

        Returns:
            Number of bytes written

        Raises:
            ValueError: If the chunk exceeds ``max_bytes``
        """
        target = self.chunk_path(upload_id, index)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")

        written = 0
        try:
            with open(partial, "wb") as f:
                while block := data.read(65536):
                    written += len(block)
                    if max_bytes is not None and written > max_bytes:
                        raise ValueError(f"Chunk exceeds maximum size of {max_bytes} bytes")
                    f.write(block)
            # Rename so a half-written chunk is never visible under its final name
            partial.replace(target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        return written

    def present_indices(self, upload_id: str) -> set[int]:
        """Return the chunk indices that have a file on disk."""
        session_dir = self.session_dir(upload_id)
        if not session_dir.is_dir():
            return set()

        indices = set()
        for entry in session_dir.iterdir():
            suffix = entry.name[len(CHUNK_NAME_PREFIX):]
            if entry.name.startswith(CHUNK_NAME_PREFIX) and suffix.isdigit():
                indices.add(int(suffix))
        return indices

    def assemble(self, upload_id: str, total_chunks: int) -> tuple[Path, int]:
        """Concatenate chunks ``0..total_chunks-1`` in index order.

        The copy is streamed through a bounded buffer, so memory use does not
        grow with file size.

        Returns:
            Tuple of (assembled file path, assembled size in bytes)
        """
        destination = self.assembled_path(upload_id)
        destination.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        try:
            with open(destination, "wb") as out:
                for index in range(total_chunks):
                    with open(self.chunk_path(upload_id, index), "rb") as chunk:
                        shutil.copyfileobj(chunk, out, self.buffer_size)
                size = out.tell()
        except BaseException:
            destination.unlink(missing_ok=True)
            raise

        logger.debug(
            "Chunks assembled",
            extra={"upload_id": upload_id, "total_chunks": total_chunks, "size_bytes": size},
        )
        return destination, size

    def remove_assembled(self, upload_id: str) -> None:
        self.assembled_path(upload_id).unlink(missing_ok=True)

    def remove_session(self, upload_id: str) -> None:
        """Delete the session's chunk directory and everything in it."""
        session_dir = self.session_dir(upload_id)
        if session_dir.exists():
            shutil.rmtree(session_dir)

    def remove_sessions(self, upload_ids: Iterable[str]) -> list[str]:
        """Delete several session directories, returning the ids that failed."""
        failed = []
        for upload_id in upload_ids:
            try:
                self.remove_session(upload_id)
                self.remove_assembled(upload_id)
            except OSError as e:
                logger.warning(
                    "Failed to remove chunk directory",
                    extra={"upload_id": upload_id, "error": str(e)},
                )
                failed.append(upload_id)
        return failed


# Singleton instance
chunk_store = ChunkStore()
