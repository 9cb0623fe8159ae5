"""Chunked upload API routes."""

import logging
import math
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from hangjegyzet.core.auth import TenantContext, get_current_tenant
from hangjegyzet.core.config import settings
from hangjegyzet.core.logging import upload_id_context
from hangjegyzet.db.models import UploadSessionStatus
from hangjegyzet.db.session import get_db
from hangjegyzet.models.upload import (
    ChunkUploadResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    FinalizeUploadRequest,
    FinalizeUploadResponse,
    SessionStatusResponse,
)
from hangjegyzet.services.exceptions import (
    InvalidChunkError,
    SessionBusyError,
    SessionExpiredError,
    SessionNotFoundError,
    UploadError,
    UploadValidationError,
)
from hangjegyzet.services.finalizer import JobSubmitter, UploadFinalizer
from hangjegyzet.services.transcription_queue import submit_transcription_job
from hangjegyzet.storage.base import StorageBackend
from hangjegyzet.storage.chunk_store import ChunkStore, chunk_store
from hangjegyzet.storage.factory import get_storage_backend
from hangjegyzet.storage.upload_store import UploadStore, is_expired

router = APIRouter(prefix="/api/v1/meetings/upload", tags=["upload"])
logger = logging.getLogger(__name__)


def get_chunk_store() -> ChunkStore:
    return chunk_store


def get_backend() -> StorageBackend:
    try:
        return get_storage_backend()
    except ValueError as e:
        logger.error(f"Storage backend configuration error: {e}")
        raise UploadError("Storage configuration error")


def get_job_submitter() -> JobSubmitter:
    return submit_transcription_job


@router.post("/sessions", response_model=CreateSessionResponse, status_code=201)
async def create_upload_session(
    request: CreateSessionRequest = Body(...),
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
) -> CreateSessionResponse:
    """Start a chunked upload."""
    if request.file_size > settings.max_upload_bytes:
        raise UploadValidationError(
            f"File size exceeds maximum allowed size of {settings.MAX_UPLOAD_MB}MB"
        )

    if settings.allowed_mime_types and request.file_type not in settings.allowed_mime_types:
        raise UploadValidationError(f"Content type {request.file_type} not allowed")

    if request.total_chunks > settings.MAX_CHUNKS_PER_UPLOAD:
        raise UploadValidationError(
            f"Too many chunks, maximum is {settings.MAX_CHUNKS_PER_UPLOAD}"
        )

    if request.chunk_size is not None:
        if request.chunk_size > settings.max_chunk_bytes:
            raise UploadValidationError(
                f"Chunk size exceeds maximum of {settings.MAX_CHUNK_MB}MB"
            )
        expected_chunks = math.ceil(request.file_size / request.chunk_size)
        if expected_chunks != request.total_chunks:
            raise UploadValidationError(
                f"totalChunks must be {expected_chunks} for this file and chunk size"
            )

    session = UploadStore(db).create_session(
        organization_id=tenant.organization_id,
        user_id=tenant.user_id,
        file_name=request.file_name,
        file_size=request.file_size,
        file_type=request.file_type,
        total_chunks=request.total_chunks,
        chunk_size=request.chunk_size,
        ttl=timedelta(hours=settings.UPLOAD_SESSION_TTL_HOURS),
    )
    upload_id_context.set(session.upload_id)

    logger.info(
        f"Upload session created: upload_id={session.upload_id}, "
        f"organization_id={tenant.organization_id}, size={request.file_size}, "
        f"chunks={request.total_chunks}"
    )

    return CreateSessionResponse(
        upload_id=session.upload_id,
        total_chunks=session.total_chunks,
        chunk_size=session.chunk_size,
        expires_at=session.expires_at,
    )


@router.post("/chunk", response_model=ChunkUploadResponse)
async def upload_chunk(
    chunk: UploadFile = File(...),
    upload_id: str = Form(..., alias="uploadId"),
    chunk_index: int = Form(..., alias="chunkIndex"),
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
    chunks: ChunkStore = Depends(get_chunk_store),
) -> ChunkUploadResponse:
    """Receive one chunk of an upload session."""
    upload_id_context.set(upload_id)
    store = UploadStore(db)

    session = store.get_session(upload_id, tenant.organization_id)
    if session is None:
        raise SessionNotFoundError("Upload session not found")

    if session.status != UploadSessionStatus.pending.value:
        raise SessionBusyError("Upload is already being finalized")

    if is_expired(session, datetime.now(timezone.utc)):
        raise SessionExpiredError("Upload session expired")

    if not 0 <= chunk_index < session.total_chunks:
        raise InvalidChunkError(
            f"chunkIndex must be between 0 and {session.total_chunks - 1}"
        )

    try:
        size = chunks.save_chunk(
            upload_id, chunk_index, chunk.file, max_bytes=settings.max_chunk_bytes
        )
    except ValueError as e:
        raise InvalidChunkError(str(e))

    received = store.record_chunk(upload_id, chunk_index, size)
    if received is None:
        # Cancelled, purged or finalized while the chunk was being written
        if store.get_session(upload_id, tenant.organization_id) is None:
            chunks.remove_sessions([upload_id])
            raise SessionNotFoundError("Upload session not found")
        raise SessionBusyError("Upload is already being finalized")

    logger.debug(
        f"Chunk received: upload_id={upload_id}, index={chunk_index}, size={size}, "
        f"received={received}/{session.total_chunks}"
    )

    return ChunkUploadResponse(
        upload_id=upload_id,
        chunk_index=chunk_index,
        received_chunks=received,
        total_chunks=session.total_chunks,
    )


@router.get("/sessions/{upload_id}", response_model=SessionStatusResponse)
async def get_upload_session(
    upload_id: str,
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
) -> SessionStatusResponse:
    """Report received and missing chunks so a client can resume."""
    store = UploadStore(db)
    session = store.get_session(upload_id, tenant.organization_id)
    if session is None:
        raise SessionNotFoundError("Upload session not found")

    received = sorted(store.received_indices(upload_id))
    received_set = set(received)

    return SessionStatusResponse(
        upload_id=session.upload_id,
        status=session.status,
        file_name=session.file_name,
        file_size=session.file_size,
        total_chunks=session.total_chunks,
        received_chunks=received,
        missing_chunks=[i for i in range(session.total_chunks) if i not in received_set],
        expires_at=session.expires_at,
    )


@router.delete("/sessions/{upload_id}", status_code=204)
async def cancel_upload_session(
    upload_id: str,
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
    chunks: ChunkStore = Depends(get_chunk_store),
) -> None:
    """Cancel a pending upload and discard its chunks."""
    upload_id_context.set(upload_id)
    store = UploadStore(db)

    if store.get_session(upload_id, tenant.organization_id) is None:
        raise SessionNotFoundError("Upload session not found")

    if not store.delete_session(upload_id, only_if_pending=True):
        raise SessionBusyError("Upload is already being finalized")

    chunks.remove_sessions([upload_id])
    logger.info(f"Upload session cancelled: upload_id={upload_id}")


@router.post("/finalize", response_model=FinalizeUploadResponse)
async def finalize_upload(
    request: FinalizeUploadRequest = Body(...),
    tenant: TenantContext = Depends(get_current_tenant),
    db: Session = Depends(get_db),
    chunks: ChunkStore = Depends(get_chunk_store),
    backend: StorageBackend = Depends(get_backend),
    submit_job: JobSubmitter = Depends(get_job_submitter),
) -> FinalizeUploadResponse:
    """Assemble the uploaded chunks, store the file and start transcription."""
    upload_id_context.set(request.upload_id)
    finalizer = UploadFinalizer(db, chunks, backend, submit_job=submit_job)

    try:
        result = await finalizer.finalize(tenant, request)
    except UploadError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during upload finalization: {e}", exc_info=True)
        raise UploadError("Upload finalization failed")

    return FinalizeUploadResponse(
        meeting_id=result.meeting_id,
        message="Upload completed and transcription started",
    )
