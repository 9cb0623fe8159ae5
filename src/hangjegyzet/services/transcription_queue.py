"""HTTP client for submitting jobs to the transcription pipeline."""

import logging
from typing import Any, Dict

import httpx
from pydantic import BaseModel, Field

from hangjegyzet.core.config import settings

logger = logging.getLogger(__name__)


class TranscriptionJob(BaseModel):
    """Job handed to the transcription pipeline for one meeting."""

    meeting_id: str = Field(..., serialization_alias="meetingId")
    organization_id: str = Field(..., serialization_alias="organizationId")
    user_id: str | None = Field(None, serialization_alias="userId")
    file_url: str = Field(..., serialization_alias="fileUrl")
    mode: str = "balanced"
    options: Dict[str, Any] = Field(default_factory=dict)


class TranscriptionQueueError(Exception):
    """Raised when a job cannot be submitted."""
    pass


async def submit_transcription_job(
    job: TranscriptionJob,
    service_url: str | None = None,
    timeout: int | None = None,
) -> Dict[str, Any]:
    """
    Submit a transcription job. Not retried; the caller records failures.

    Args:
        job: Job description
        service_url: Base URL of the transcription service
        timeout: Request timeout in seconds

    Returns:
        Response body of the transcription service

    Raises:
        TranscriptionQueueError: If the service is not configured or rejects the job
    """
    service_url = service_url or settings.TRANSCRIPTION_SERVICE_URL
    timeout = timeout or settings.TRANSCRIPTION_TIMEOUT

    if not service_url:
        raise TranscriptionQueueError("TRANSCRIPTION_SERVICE_URL not configured")

    payload = job.model_dump(by_alias=True)

    logger.info(
        "Submitting transcription job",
        extra={
            "meeting_id": job.meeting_id,
            "organization_id": job.organization_id,
            "mode": job.mode,
            "transcription_url": service_url,
        },
    )

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(f"{service_url.rstrip('/')}/jobs", json=payload)
            response.raise_for_status()
    except (httpx.TimeoutException, httpx.HTTPError) as e:
        status_code = getattr(getattr(e, "response", None), "status_code", None)
        logger.error(
            "Transcription job submission failed",
            extra={
                "meeting_id": job.meeting_id,
                "error": str(e),
                "error_type": "timeout" if isinstance(e, httpx.TimeoutException) else "http_error",
                "status_code": status_code,
            },
        )
        raise TranscriptionQueueError(f"Transcription service error: {e}") from e

    result = response.json() if response.content else {}
    logger.info(
        "Transcription job accepted",
        extra={"meeting_id": job.meeting_id, "status_code": response.status_code},
    )
    return result
