"""Finalization of chunked uploads into meetings.

Finalize is all-or-nothing up to meeting creation: either every expected chunk
is present and exactly one artifact plus one meeting row are created, or no
durable state is left behind. Once the meeting exists it is never rolled
back; a failed hand-off to the transcription pipeline is recorded on the
meeting instead.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from sqlalchemy.orm import Session

from hangjegyzet.core.auth import TenantContext
from hangjegyzet.core.config import settings
from hangjegyzet.db.models import Meeting, MeetingStatus, UploadSession
from hangjegyzet.models.upload import FinalizeUploadRequest
from hangjegyzet.services.exceptions import (
    ArtifactStorageError,
    ChunkCountMismatchError,
    EnqueueError,
    IncompleteUploadError,
    RecordCreationError,
    SessionBusyError,
    SessionNotFoundError,
    SizeMismatchError,
)
from hangjegyzet.services.processing_options import resolve_processing_options
from hangjegyzet.services.transcription_queue import TranscriptionJob, submit_transcription_job
from hangjegyzet.storage.base import StorageBackend
from hangjegyzet.storage.chunk_store import ChunkStore
from hangjegyzet.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)

JobSubmitter = Callable[[TranscriptionJob], Awaitable[Any]]


@dataclass
class FinalizeResult:
    """Outcome of a successful finalize."""

    meeting_id: str
    object_key: str
    storage_path: str
    size_bytes: int


def meeting_title(file_name: str) -> str:
    """File name without its last extension."""
    return re.sub(r"\.[^/.]+$", "", file_name) or file_name


class UploadFinalizer:
    """Turns a complete upload session into a stored artifact and a meeting."""

    def __init__(
        self,
        db: Session,
        chunk_store: ChunkStore,
        backend: StorageBackend,
        submit_job: JobSubmitter = submit_transcription_job,
    ):
        self.db = db
        self.store = UploadStore(db)
        self.chunk_store = chunk_store
        self.backend = backend
        self.submit_job = submit_job

    async def finalize(
        self, tenant: TenantContext, request: FinalizeUploadRequest
    ) -> FinalizeResult:
        """Close an upload session into a meeting.

        Args:
            tenant: Caller's user and organization
            request: Finalize parameters sent by the client

        Returns:
            FinalizeResult for the created meeting

        Raises:
            SessionNotFoundError: Unknown session or owned by another tenant
            ChunkCountMismatchError: Declared chunk count differs from the session
            IncompleteUploadError: Some chunk indices are missing
            SessionBusyError: Another request is finalizing the same session
            SizeMismatchError: Assembled size differs from the declared size
            ArtifactStorageError: Publishing to durable storage failed
            RecordCreationError: The meeting row could not be inserted
            EnqueueError: The transcription job could not be submitted
        """
        upload_id = request.upload_id

        session = self.store.get_session(upload_id, tenant.organization_id)
        if session is None:
            raise SessionNotFoundError("Upload session not found")

        if request.total_chunks != session.total_chunks:
            raise ChunkCountMismatchError(
                "Declared chunk count does not match the upload session",
                totalChunks=request.total_chunks,
                expectedChunks=session.total_chunks,
            )

        processing_options = resolve_processing_options(request.mode, request.processing_options)
        self._check_complete(session)

        if not self.store.claim(upload_id):
            raise SessionBusyError("Upload is already being finalized")

        logger.info(
            "Finalizing upload",
            extra={
                "upload_id": upload_id,
                "organization_id": tenant.organization_id,
                "total_chunks": session.total_chunks,
            },
        )

        try:
            artifact_path, size_bytes = await self._assemble(session)
            object_key, storage_path = await self._publish(session, artifact_path)
        except BaseException:
            self._discard_claim(upload_id)
            raise

        try:
            meeting = self._create_meeting(
                tenant, session, request, object_key, storage_path, size_bytes, processing_options
            )
        except Exception as e:
            logger.error(
                "Meeting creation failed",
                extra={"upload_id": upload_id, "object_key": object_key, "error": str(e)},
                exc_info=True,
            )
            self.db.rollback()
            await self._remove_artifact(object_key)
            self._discard_claim(upload_id)
            raise RecordCreationError("Failed to create meeting record") from e

        self._cleanup(upload_id)

        await self._enqueue(tenant, meeting, storage_path, request.mode, processing_options)

        logger.info(
            "Upload finalized",
            extra={
                "upload_id": upload_id,
                "meeting_id": meeting.id,
                "object_key": object_key,
                "size_bytes": size_bytes,
            },
        )
        return FinalizeResult(
            meeting_id=meeting.id,
            object_key=object_key,
            storage_path=storage_path,
            size_bytes=size_bytes,
        )

    def _check_complete(self, session: UploadSession) -> None:
        """Cross-check the ledger and the chunk files against ``[0, total_chunks)``."""
        expected = range(session.total_chunks)
        recorded = self.store.received_indices(session.upload_id)
        on_disk = self.chunk_store.present_indices(session.upload_id)

        missing = [i for i in expected if i not in recorded or i not in on_disk]
        if missing:
            logger.warning(
                "Finalize rejected, chunks missing",
                extra={"upload_id": session.upload_id, "missing_chunks": missing},
            )
            raise IncompleteUploadError(missing, session.total_chunks)

    async def _assemble(self, session: UploadSession) -> tuple[Path, int]:
        artifact_path, size_bytes = await asyncio.to_thread(
            self.chunk_store.assemble, session.upload_id, session.total_chunks
        )
        if size_bytes != session.file_size:
            raise SizeMismatchError(
                "Assembled file size does not match the declared size",
                fileSize=session.file_size,
                assembledSize=size_bytes,
            )
        return artifact_path, size_bytes

    async def _publish(self, session: UploadSession, artifact_path: Path) -> tuple[str, str]:
        object_key = self.backend.get_object_key(
            session.organization_id, session.upload_id, session.file_name
        )
        try:
            with open(artifact_path, "rb") as artifact:
                storage_path = await self.backend.store_file(
                    object_key, session.file_type, artifact
                )
        except Exception as e:
            logger.error(
                "Artifact upload failed",
                extra={
                    "upload_id": session.upload_id,
                    "object_key": object_key,
                    "backend": self.backend.get_backend_name(),
                    "error": str(e),
                },
                exc_info=True,
            )
            raise ArtifactStorageError("Failed to upload file to storage") from e
        return object_key, storage_path

    def _create_meeting(
        self,
        tenant: TenantContext,
        session: UploadSession,
        request: FinalizeUploadRequest,
        object_key: str,
        storage_path: str,
        size_bytes: int,
        processing_options: dict[str, Any],
    ) -> Meeting:
        duration = request.estimated_duration or settings.DEFAULT_ESTIMATED_DURATION_MINUTES
        start_time = request.start_time or datetime.now(timezone.utc)
        end_time = request.end_time or start_time + timedelta(minutes=duration)

        meeting = Meeting(
            organization_id=tenant.organization_id,
            user_id=tenant.user_id,
            title=meeting_title(session.file_name),
            start_time=start_time,
            end_time=end_time,
            status=MeetingStatus.transcribing.value,
            audio_file_url=object_key,
            file_size=size_bytes,
            duration_minutes=duration,
            transcription_mode=request.mode,
            calendar_event_id=request.calendar_event_id,
            template_id=request.template_id,
            metadata_json={
                "originalFileName": session.file_name,
                "fileType": session.file_type,
                "uploadId": session.upload_id,
                "storagePath": storage_path,
                "processingOptions": processing_options,
            },
        )
        self.db.add(meeting)
        self.db.commit()
        self.db.refresh(meeting)
        return meeting

    def _cleanup(self, upload_id: str) -> None:
        """Remove temporary state. Failures are logged, never raised."""
        for remove, what in (
            (self.chunk_store.remove_session, "chunk directory"),
            (self.chunk_store.remove_assembled, "assembled file"),
        ):
            try:
                remove(upload_id)
            except OSError as e:
                logger.warning(
                    f"Failed to remove {what}",
                    extra={"upload_id": upload_id, "error": str(e)},
                )

        try:
            self.store.delete_session(upload_id)
        except Exception as e:
            logger.warning(
                "Failed to delete upload session rows",
                extra={"upload_id": upload_id, "error": str(e)},
            )

    async def _enqueue(
        self,
        tenant: TenantContext,
        meeting: Meeting,
        storage_path: str,
        mode: str,
        processing_options: dict[str, Any],
    ) -> None:
        job = TranscriptionJob(
            meeting_id=meeting.id,
            organization_id=tenant.organization_id,
            user_id=tenant.user_id,
            file_url=storage_path,
            mode=mode,
            options=processing_options,
        )
        try:
            await self.submit_job(job)
        except Exception as e:
            logger.error(
                "Failed to queue transcription job",
                extra={"meeting_id": meeting.id, "error": str(e)},
                exc_info=True,
            )
            self._mark_failed(meeting)
            raise EnqueueError("Failed to start transcription", meeting_id=meeting.id) from e

    def _mark_failed(self, meeting: Meeting) -> None:
        try:
            meeting.status = MeetingStatus.failed.value
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Failed to mark meeting as failed",
                extra={"meeting_id": meeting.id, "error": str(e)},
                exc_info=True,
            )

    async def _remove_artifact(self, object_key: str) -> None:
        try:
            await self.backend.remove_file(object_key)
        except Exception as e:
            logger.error(
                "Failed to remove orphaned artifact",
                extra={"object_key": object_key, "error": str(e)},
            )

    def _discard_claim(self, upload_id: str) -> None:
        """Drop the temp artifact and hand the session back to pending."""
        try:
            self.chunk_store.remove_assembled(upload_id)
        except OSError as e:
            logger.warning(
                "Failed to remove assembled file",
                extra={"upload_id": upload_id, "error": str(e)},
            )
        try:
            self.store.release(upload_id)
        except Exception as e:
            logger.error(
                "Failed to release upload session claim",
                extra={"upload_id": upload_id, "error": str(e)},
                exc_info=True,
            )
