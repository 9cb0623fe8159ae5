"""Upload data models.

Field names are snake_case in Python and camelCase on the wire, matching the
browser upload client.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateSessionRequest(CamelModel):
    """Request model for starting a chunked upload."""

    file_name: str = Field(..., alias="fileName", min_length=1)
    file_size: int = Field(..., alias="fileSize", gt=0)
    file_type: str = Field(..., alias="fileType")
    total_chunks: int = Field(..., alias="totalChunks", ge=1)
    chunk_size: Optional[int] = Field(None, alias="chunkSize", gt=0)


class CreateSessionResponse(CamelModel):
    """Response model for upload session creation."""

    upload_id: str = Field(..., alias="uploadId")
    total_chunks: int = Field(..., alias="totalChunks")
    chunk_size: Optional[int] = Field(None, alias="chunkSize")
    expires_at: datetime = Field(..., alias="expiresAt")


class ChunkUploadResponse(CamelModel):
    """Response model for a received chunk."""

    upload_id: str = Field(..., alias="uploadId")
    chunk_index: int = Field(..., alias="chunkIndex")
    received_chunks: int = Field(..., alias="receivedChunks")
    total_chunks: int = Field(..., alias="totalChunks")


class SessionStatusResponse(CamelModel):
    """Response model for resuming an upload."""

    upload_id: str = Field(..., alias="uploadId")
    status: str
    file_name: str = Field(..., alias="fileName")
    file_size: int = Field(..., alias="fileSize")
    total_chunks: int = Field(..., alias="totalChunks")
    received_chunks: list[int] = Field(..., alias="receivedChunks")
    missing_chunks: list[int] = Field(..., alias="missingChunks")
    expires_at: datetime = Field(..., alias="expiresAt")


class FinalizeUploadRequest(CamelModel):
    """Request model for closing an upload session into a meeting."""

    upload_id: str = Field(..., alias="uploadId", min_length=1)
    file_name: str = Field(..., alias="fileName", min_length=1)
    file_type: str = Field(..., alias="fileType")
    file_size: int = Field(..., alias="fileSize", ge=0)
    total_chunks: int = Field(..., alias="totalChunks", ge=1)
    mode: str = "balanced"
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    calendar_event_id: Optional[str] = Field(None, alias="calendarEventId")
    template_id: Optional[str] = Field(None, alias="templateId")
    estimated_duration: Optional[int] = Field(None, alias="estimatedDuration", gt=0)
    processing_options: dict[str, Any] = Field(default_factory=dict, alias="processingOptions")


class FinalizeUploadResponse(CamelModel):
    """Response model for a successful finalize."""

    success: bool = True
    meeting_id: str = Field(..., alias="meetingId")
    message: str
