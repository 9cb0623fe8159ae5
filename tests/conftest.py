"""Pytest configuration and shared fixtures."""

import os

# Keep the module-level engine off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENV", "test")

import io
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hangjegyzet.api.v1.routes_upload import get_backend, get_chunk_store, get_job_submitter
from hangjegyzet.core.auth import TenantContext, get_current_tenant
from hangjegyzet.db.models import Base, Profile
from hangjegyzet.db.session import get_db
from hangjegyzet.main import app
from hangjegyzet.storage.chunk_store import ChunkStore
from hangjegyzet.storage.local import LocalStorageBackend
from hangjegyzet.storage.upload_store import UploadStore


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def tenant():
    return TenantContext(user_id="user-1", organization_id="org-1")


@pytest.fixture
def other_tenant():
    return TenantContext(user_id="user-2", organization_id="org-2")


@pytest.fixture
def chunks(tmp_path):
    """Chunk store rooted in a temp dir, with a small buffer to exercise streaming."""
    return ChunkStore(root=tmp_path / "chunks", buffer_size=16)


@pytest.fixture
def backend(tmp_path):
    return LocalStorageBackend(base_path=tmp_path / "artifacts")


@pytest.fixture
def job_submitter():
    return AsyncMock(return_value={"status": "queued"})


@pytest.fixture
def make_upload(db, chunks):
    """Create a session and optionally deliver chunks.

    ``sizes`` gives the byte length of every expected chunk; ``present`` lists
    the indices actually delivered (all by default). Chunk ``i`` is filled with
    the byte ``ord('a') + i`` so ordering is visible in the assembled file.
    """

    def _make(tenant, sizes, present=None, file_name="meeting.mp3", file_type="audio/mpeg"):
        store = UploadStore(db)
        session = store.create_session(
            organization_id=tenant.organization_id,
            user_id=tenant.user_id,
            file_name=file_name,
            file_size=sum(sizes),
            file_type=file_type,
            total_chunks=len(sizes),
            chunk_size=max(sizes),
            ttl=timedelta(hours=24),
        )
        indices = range(len(sizes)) if present is None else present
        for index in indices:
            payload = bytes([ord("a") + index % 26]) * sizes[index]
            size = chunks.save_chunk(session.upload_id, index, io.BytesIO(payload))
            store.record_chunk(session.upload_id, index, size)
        return session

    return _make


@pytest.fixture
def client(session_factory, tenant, chunks, backend, job_submitter):
    """Test client with storage, database, auth and job submission overridden."""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_tenant] = lambda: tenant
    app.dependency_overrides[get_chunk_store] = lambda: chunks
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_job_submitter] = lambda: job_submitter

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def profile(db, tenant):
    db.add(Profile(id=tenant.user_id, organization_id=tenant.organization_id))
    db.commit()
    return tenant
