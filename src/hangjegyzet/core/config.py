"""Configuration management for the Hangjegyzet upload service."""

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = (
    "audio/mpeg,audio/mp3,audio/wav,audio/x-wav,audio/mp4,audio/x-m4a,"
    "audio/aac,video/mp4,video/quicktime,video/x-msvideo"
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    ENV: str = "local"
    SERVICE_NAME: str = "hangjegyzet-upload"
    SERVICE_VERSION: str = "0.1.0"

    # Database
    DATABASE_URL: str = "sqlite:///./data/hangjegyzet.db"

    # Artifact storage
    STORAGE_BACKEND: str = "local"  # "gcs" or "local"
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""
    LOCAL_STORAGE_PATH: str = "data/meetings"

    # Chunked uploads
    TEMP_UPLOAD_DIR: str = "/tmp/hangjegyzet-uploads"
    MAX_UPLOAD_MB: int = 2048
    MAX_CHUNK_MB: int = 10
    MAX_CHUNKS_PER_UPLOAD: int = 10_000
    ALLOWED_UPLOAD_MIME_TYPES: str = DEFAULT_ALLOWED_MIME_TYPES  # Comma-separated, empty = allow all
    UPLOAD_SESSION_TTL_HOURS: int = 24
    ASSEMBLY_BUFFER_KB: int = 1024

    # Auth service
    AUTH_SERVICE_URL: str = ""
    AUTH_SERVICE_API_KEY: str = ""
    AUTH_TIMEOUT: int = 5  # seconds

    # Transcription pipeline
    TRANSCRIPTION_SERVICE_URL: str = ""
    TRANSCRIPTION_TIMEOUT: int = 30  # seconds for job submission
    DEFAULT_ESTIMATED_DURATION_MINUTES: int = 60

    # Maintenance endpoints, disabled when empty
    MAINTENANCE_TOKEN: str = ""

    LOG_LEVEL: str = "INFO"

    @property
    def allowed_mime_types(self) -> list[str] | None:
        """Parse ALLOWED_UPLOAD_MIME_TYPES into a list."""
        if not self.ALLOWED_UPLOAD_MIME_TYPES:
            return None
        return [mt.strip() for mt in self.ALLOWED_UPLOAD_MIME_TYPES.split(",") if mt.strip()]

    @property
    def max_upload_bytes(self) -> int:
        """Convert MAX_UPLOAD_MB to bytes."""
        return self.MAX_UPLOAD_MB * 1024 * 1024

    @property
    def max_chunk_bytes(self) -> int:
        """Convert MAX_CHUNK_MB to bytes."""
        return self.MAX_CHUNK_MB * 1024 * 1024

    @property
    def assembly_buffer_bytes(self) -> int:
        """Convert ASSEMBLY_BUFFER_KB to bytes."""
        return self.ASSEMBLY_BUFFER_KB * 1024


# Singleton settings instance
settings = Settings()
