"""Tests for transcription job submission."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from hangjegyzet.services.transcription_queue import (
    TranscriptionJob,
    TranscriptionQueueError,
    submit_transcription_job,
)


@pytest.fixture
def job():
    return TranscriptionJob(
        meeting_id="meeting-1",
        organization_id="org-1",
        user_id="user-1",
        file_url="gs://bucket/org-1/up-1_a.mp3",
        mode="fast",
        options={"enableMultiPass": False},
    )


@pytest.fixture
def mock_http_client():
    """Patch httpx.AsyncClient used by the queue client."""
    client = MagicMock()
    client.post = AsyncMock()
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=client)
    context.__aexit__ = AsyncMock(return_value=False)

    with patch(
        "hangjegyzet.services.transcription_queue.httpx.AsyncClient", return_value=context
    ):
        yield client


def test_job_payload_uses_camel_case(job):
    payload = job.model_dump(by_alias=True)

    assert payload["meetingId"] == "meeting-1"
    assert payload["organizationId"] == "org-1"
    assert payload["fileUrl"] == "gs://bucket/org-1/up-1_a.mp3"
    assert payload["options"] == {"enableMultiPass": False}


@pytest.mark.asyncio
async def test_submit_success(job, mock_http_client):
    request = httpx.Request("POST", "http://transcriber/jobs")
    mock_http_client.post.return_value = httpx.Response(
        202, json={"jobId": "job-9"}, request=request
    )

    result = await submit_transcription_job(job, service_url="http://transcriber/")

    assert result == {"jobId": "job-9"}
    url = mock_http_client.post.call_args.args[0]
    assert url == "http://transcriber/jobs"
    assert mock_http_client.post.call_args.kwargs["json"]["meetingId"] == "meeting-1"


@pytest.mark.asyncio
async def test_submit_rejected(job, mock_http_client):
    request = httpx.Request("POST", "http://transcriber/jobs")
    mock_http_client.post.return_value = httpx.Response(503, request=request)

    with pytest.raises(TranscriptionQueueError):
        await submit_transcription_job(job, service_url="http://transcriber")

    # No automatic retry
    assert mock_http_client.post.await_count == 1


@pytest.mark.asyncio
async def test_submit_timeout(job, mock_http_client):
    mock_http_client.post.side_effect = httpx.ReadTimeout("slow")

    with pytest.raises(TranscriptionQueueError):
        await submit_transcription_job(job, service_url="http://transcriber")


@pytest.mark.asyncio
async def test_submit_without_service_url(job, monkeypatch):
    from hangjegyzet.core.config import settings

    monkeypatch.setattr(settings, "TRANSCRIPTION_SERVICE_URL", "")

    with pytest.raises(TranscriptionQueueError, match="not configured"):
        await submit_transcription_job(job)
