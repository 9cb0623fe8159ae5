import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase

# id/fk columns are String(36) so the schema works on SQLite and PostgreSQL alike
ID_TYPE = String(36)


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadSessionStatus(str, enum.Enum):
    pending = "pending"  # accepting chunks
    finalizing = "finalizing"  # claimed by exactly one finalize call


class MeetingStatus(str, enum.Enum):
    uploading = "uploading"
    transcribing = "transcribing"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(ID_TYPE, primary_key=True)  # auth user id
    organization_id = Column(ID_TYPE, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class UploadSession(Base):
    __tablename__ = "upload_sessions"
    upload_id = Column(ID_TYPE, primary_key=True, default=new_id)
    organization_id = Column(ID_TYPE, nullable=False, index=True)
    user_id = Column(ID_TYPE, nullable=False)
    file_name = Column(String(512), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_type = Column(String(128), nullable=False)
    chunk_size = Column(BigInteger)
    total_chunks = Column(Integer, nullable=False)
    status = Column(String(32), nullable=False, default=UploadSessionStatus.pending.value)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)


class UploadChunk(Base):
    __tablename__ = "upload_chunks"
    __table_args__ = (UniqueConstraint("upload_id", "chunk_index", name="uq_upload_chunk"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    upload_id = Column(ID_TYPE, ForeignKey("upload_sessions.upload_id"), nullable=False, index=True)
    chunk_index = Column(Integer, nullable=False)
    size = Column(BigInteger, nullable=False)
    received_at = Column(DateTime(timezone=True), default=utcnow)


class Meeting(Base):
    __tablename__ = "meetings"
    id = Column(ID_TYPE, primary_key=True, default=new_id)
    organization_id = Column(ID_TYPE, nullable=False, index=True)
    user_id = Column(ID_TYPE, nullable=False)
    title = Column(String(512), nullable=False)
    start_time = Column(DateTime(timezone=True))
    end_time = Column(DateTime(timezone=True))
    status = Column(String(32), nullable=False)  # uploading | transcribing | processing | completed | failed
    audio_file_url = Column(Text, nullable=False)
    file_size = Column(BigInteger)
    duration_minutes = Column(Integer)
    transcription_mode = Column(String(32))
    calendar_event_id = Column(String(255))
    template_id = Column(String(255))
    metadata_json = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow)
