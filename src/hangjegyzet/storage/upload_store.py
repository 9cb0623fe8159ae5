"""Upload session ledger.

Sessions and received chunks are rows in ``upload_sessions`` and
``upload_chunks`` so they survive restarts and are shared between workers.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hangjegyzet.db.models import UploadChunk, UploadSession, UploadSessionStatus

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(session: UploadSession, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return _as_utc(session.expires_at) <= now


class UploadStore:
    """Persistent store for upload sessions and their chunk ledger."""

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self,
        organization_id: str,
        user_id: str,
        file_name: str,
        file_size: int,
        file_type: str,
        total_chunks: int,
        chunk_size: Optional[int],
        ttl: timedelta,
    ) -> UploadSession:
        """Create a new pending upload session."""
        now = datetime.now(timezone.utc)
        session = UploadSession(
            organization_id=organization_id,
            user_id=user_id,
            file_name=file_name,
            file_size=file_size,
            file_type=file_type,
            total_chunks=total_chunks,
            chunk_size=chunk_size,
            status=UploadSessionStatus.pending.value,
            created_at=now,
            expires_at=now + ttl,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def get_session(self, upload_id: str, organization_id: str) -> Optional[UploadSession]:
        """Retrieve a session, scoped to the owning tenant."""
        stmt = select(UploadSession).where(
            UploadSession.upload_id == upload_id,
            UploadSession.organization_id == organization_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def received_indices(self, upload_id: str) -> set[int]:
        stmt = select(UploadChunk.chunk_index).where(UploadChunk.upload_id == upload_id)
        return set(self.db.execute(stmt).scalars().all())

    def record_chunk(self, upload_id: str, chunk_index: int, size: int) -> Optional[int]:
        """Record a received chunk, replacing an earlier row for the same index.

        Returns:
            Number of distinct chunks received so far, or None if the session
            was deleted or claimed since the caller looked it up
        """
        pending = self.db.execute(
            select(UploadSession.upload_id).where(
                UploadSession.upload_id == upload_id,
                UploadSession.status == UploadSessionStatus.pending.value,
            )
        ).scalar_one_or_none()
        if pending is None:
            self.db.rollback()
            return None

        existing = self.db.execute(
            select(UploadChunk).where(
                UploadChunk.upload_id == upload_id,
                UploadChunk.chunk_index == chunk_index,
            )
        ).scalar_one_or_none()

        if existing is not None:
            existing.size = size
            existing.received_at = datetime.now(timezone.utc)
        else:
            self.db.add(UploadChunk(upload_id=upload_id, chunk_index=chunk_index, size=size))
        try:
            self.db.commit()
        except IntegrityError:
            # Session row deleted between the check above and the insert
            self.db.rollback()
            return None

        return len(self.received_indices(upload_id))

    def claim(self, upload_id: str) -> bool:
        """Atomically move a session from pending to finalizing.

        Returns:
            True if this call won the claim, False if the session is gone or
            already claimed
        """
        result = self.db.execute(
            update(UploadSession)
            .where(
                UploadSession.upload_id == upload_id,
                UploadSession.status == UploadSessionStatus.pending.value,
            )
            .values(status=UploadSessionStatus.finalizing.value)
        )
        self.db.commit()
        return result.rowcount == 1

    def release(self, upload_id: str) -> None:
        """Return a claimed session to pending so the client can retry."""
        self.db.execute(
            update(UploadSession)
            .where(
                UploadSession.upload_id == upload_id,
                UploadSession.status == UploadSessionStatus.finalizing.value,
            )
            .values(status=UploadSessionStatus.pending.value)
        )
        self.db.commit()

    def delete_session(self, upload_id: str, only_if_pending: bool = False) -> bool:
        """Delete a session and its chunk rows.

        Args:
            upload_id: Session to delete
            only_if_pending: Leave a session claimed by a finalize call alone

        Returns:
            True if the session row was deleted
        """
        conditions = [UploadSession.upload_id == upload_id]
        if only_if_pending:
            conditions.append(UploadSession.status == UploadSessionStatus.pending.value)

        try:
            # Chunk rows go first to satisfy the foreign key; the rollback below
            # restores them if the session row turns out not to be deletable.
            owned = select(UploadSession.upload_id).where(*conditions)
            self.db.execute(delete(UploadChunk).where(UploadChunk.upload_id.in_(owned)))
            result = self.db.execute(delete(UploadSession).where(*conditions))
            if result.rowcount != 1:
                self.db.rollback()
                return False
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    def list_expired(self, now: Optional[datetime] = None) -> list[str]:
        """List ids of pending sessions whose expiry has passed."""
        now = now or datetime.now(timezone.utc)
        stmt = select(UploadSession.upload_id).where(
            UploadSession.status == UploadSessionStatus.pending.value,
            UploadSession.expires_at <= now,
        )
        return list(self.db.execute(stmt).scalars().all())
