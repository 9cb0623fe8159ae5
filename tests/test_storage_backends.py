"""Tests for storage backends."""

import io
from unittest.mock import MagicMock, patch

import pytest
from google.cloud.exceptions import NotFound

from hangjegyzet.storage.factory import get_storage_backend
from hangjegyzet.storage.gcs import GCSStorageBackend, gcs_backend
from hangjegyzet.storage.local import LocalStorageBackend, local_backend


class TestLocalStorageBackend:
    """Tests for local storage backend."""

    def test_sanitize_filename(self):
        """Test filename sanitization."""
        backend = LocalStorageBackend()

        # Path traversal removal
        assert "../etc/passwd" not in backend._sanitize_filename("../etc/passwd")
        assert "..\\" not in backend._sanitize_filename("..\\windows\\system32")

        # Directory separators replaced
        assert "/" not in backend._sanitize_filename("path/to/file.mp3")
        assert "\\" not in backend._sanitize_filename("path\\to\\file.mp3")

        # Accented and special characters replaced
        result = backend._sanitize_filename("értekezlet@#$.mp3")
        assert "@" not in result
        assert "é" not in result
        assert result.endswith(".mp3")

        # Valid characters preserved
        assert backend._sanitize_filename("valid-file_name.123.mp3") == "valid-file_name.123.mp3"

    def test_get_object_key(self):
        """Object keys are scoped to the organization and the upload."""
        backend = LocalStorageBackend()

        key = backend.get_object_key("org-7", "upload-123", "weekly sync.mp3")

        assert key == "org-7/upload-123_weekly_sync.mp3"

    @pytest.mark.asyncio
    async def test_store_file(self, tmp_path):
        backend = LocalStorageBackend(base_path=tmp_path)
        content = b"ID3 fake audio"

        storage_path = await backend.store_file("org-1/up-1_a.mp3", "audio/mpeg", io.BytesIO(content))

        assert (tmp_path / "org-1" / "up-1_a.mp3").read_bytes() == content
        assert storage_path == str(tmp_path / "org-1" / "up-1_a.mp3")
        assert backend.file_exists("org-1/up-1_a.mp3")

    @pytest.mark.asyncio
    async def test_store_file_never_overwrites(self, tmp_path):
        backend = LocalStorageBackend(base_path=tmp_path)
        await backend.store_file("org-1/up-1_a.mp3", "audio/mpeg", io.BytesIO(b"first"))

        with pytest.raises(FileExistsError):
            await backend.store_file("org-1/up-1_a.mp3", "audio/mpeg", io.BytesIO(b"second"))

        assert (tmp_path / "org-1" / "up-1_a.mp3").read_bytes() == b"first"

    @pytest.mark.asyncio
    async def test_failed_write_leaves_nothing_and_retry_succeeds(self, tmp_path):
        backend = LocalStorageBackend(base_path=tmp_path)
        stream = MagicMock()
        stream.read.side_effect = [b"x" * 65536, OSError("No space left on device")]

        with pytest.raises(OSError, match="No space left"):
            await backend.store_file("org-1/up-1_a.mp3", "audio/mpeg", stream)

        assert not backend.file_exists("org-1/up-1_a.mp3")

        await backend.store_file("org-1/up-1_a.mp3", "audio/mpeg", io.BytesIO(b"audio"))
        assert (tmp_path / "org-1" / "up-1_a.mp3").read_bytes() == b"audio"

    @pytest.mark.asyncio
    async def test_remove_file(self, tmp_path):
        backend = LocalStorageBackend(base_path=tmp_path)
        await backend.store_file("org-1/up-1_a.mp3", "audio/mpeg", io.BytesIO(b"x"))

        await backend.remove_file("org-1/up-1_a.mp3")
        await backend.remove_file("org-1/up-1_a.mp3")

        assert not backend.file_exists("org-1/up-1_a.mp3")

    def test_get_backend_name(self):
        assert LocalStorageBackend().get_backend_name() == "local"


class TestGCSStorageBackend:
    """Tests for GCS storage backend."""

    @pytest.fixture
    def mock_blob(self):
        with patch("hangjegyzet.storage.gcs.storage.Client") as mock_client_class:
            with patch("hangjegyzet.storage.gcs.settings") as mock_settings:
                mock_settings.GCS_BUCKET_NAME = "test-bucket"
                mock_settings.GCP_PROJECT_ID = "test-project"

                mock_client = MagicMock()
                mock_bucket = MagicMock()
                blob = MagicMock()

                mock_client_class.return_value = mock_client
                mock_client.bucket.return_value = mock_bucket
                mock_bucket.blob.return_value = blob

                yield blob

    @pytest.mark.asyncio
    async def test_store_file(self, mock_blob):
        """Upload is create-only and returns a gs:// URI."""
        backend = GCSStorageBackend()

        storage_path = await backend.store_file(
            "org-1/up-1_a.mp3", "audio/mpeg", io.BytesIO(b"audio")
        )

        mock_blob.upload_from_file.assert_called_once()
        assert mock_blob.upload_from_file.call_args.kwargs["if_generation_match"] == 0
        assert mock_blob.content_type == "audio/mpeg"
        assert storage_path == "gs://test-bucket/org-1/up-1_a.mp3"

    @pytest.mark.asyncio
    async def test_remove_missing_file_is_ignored(self, mock_blob):
        mock_blob.delete.side_effect = NotFound("gone")
        backend = GCSStorageBackend()

        await backend.remove_file("org-1/up-1_a.mp3")

        mock_blob.delete.assert_called_once()

    def test_file_exists(self, mock_blob):
        mock_blob.exists.return_value = True

        assert GCSStorageBackend().file_exists("org-1/up-1_a.mp3") is True

    def test_get_backend_name(self):
        assert GCSStorageBackend().get_backend_name() == "gcs"

    def test_get_bucket_missing_config(self):
        """Test bucket initialization with missing config."""
        with patch("hangjegyzet.storage.gcs.settings") as mock_settings:
            mock_settings.GCS_BUCKET_NAME = ""

            backend = GCSStorageBackend()

            with pytest.raises(ValueError, match="GCS_BUCKET_NAME not configured"):
                backend._get_bucket()


class TestStorageFactory:
    def test_selects_configured_backend(self, monkeypatch):
        from hangjegyzet.core.config import settings

        monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
        assert get_storage_backend() is local_backend

        monkeypatch.setattr(settings, "STORAGE_BACKEND", "gcs")
        assert get_storage_backend() is gcs_backend

    def test_unknown_backend(self, monkeypatch):
        from hangjegyzet.core.config import settings

        monkeypatch.setattr(settings, "STORAGE_BACKEND", "ftp")

        with pytest.raises(ValueError, match="Unknown storage backend"):
            get_storage_backend()
