"""Custom exceptions for the upload service.

Every exception carries the HTTP status it maps to; ``main.py`` renders them
as ``{"error": ...}`` responses.
"""

from typing import Any


class UploadError(Exception):
    """Base exception for upload operations."""

    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


class NotAuthenticatedError(UploadError):
    """Raised when the request carries no valid user."""

    status_code = 401


class ProfileNotFoundError(UploadError):
    """Raised when the authenticated user has no organization profile."""

    status_code = 404


class SessionNotFoundError(UploadError):
    """Raised when an upload session is absent or belongs to another tenant."""

    status_code = 404


class UploadValidationError(UploadError):
    """Raised when session creation parameters are rejected."""

    status_code = 400


class InvalidChunkError(UploadError):
    """Raised when a chunk index or size is out of range."""

    status_code = 400


class ChunkCountMismatchError(UploadError):
    """Raised when the declared chunk count differs from the session's."""

    status_code = 400


class IncompleteUploadError(UploadError):
    """Raised when expected chunk indices are missing."""

    status_code = 400

    def __init__(self, missing_chunks: list[int], total_chunks: int):
        super().__init__(
            "Not all chunks uploaded",
            missingChunks=missing_chunks,
            totalChunks=total_chunks,
        )
        self.missing_chunks = missing_chunks


class SizeMismatchError(UploadError):
    """Raised when the assembled file size differs from the declared size."""

    status_code = 400


class SessionBusyError(UploadError):
    """Raised when another request already claimed the session."""

    status_code = 409


class SessionExpiredError(UploadError):
    """Raised when chunks arrive for an expired session."""

    status_code = 410


class ArtifactStorageError(UploadError):
    """Raised when publishing the assembled file to storage fails."""

    status_code = 500


class RecordCreationError(UploadError):
    """Raised when the meeting record cannot be inserted."""

    status_code = 500


class EnqueueError(UploadError):
    """Raised when the transcription job cannot be submitted.

    The meeting record is kept with status ``failed``.
    """

    status_code = 500

    def __init__(self, message: str, meeting_id: str):
        super().__init__(message, meetingId=meeting_id)
        self.meeting_id = meeting_id
