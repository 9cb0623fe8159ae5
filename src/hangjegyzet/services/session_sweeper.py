"""Removal of abandoned upload sessions."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from hangjegyzet.storage.chunk_store import ChunkStore
from hangjegyzet.storage.upload_store import UploadStore

logger = logging.getLogger(__name__)


@dataclass
class PurgeReport:
    purged: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def purge_expired_sessions(
    db: Session, chunk_store: ChunkStore, now: datetime | None = None
) -> PurgeReport:
    """Delete pending sessions past their expiry, with their chunks.

    Sessions claimed by a running finalize are left alone.
    """
    store = UploadStore(db)
    report = PurgeReport()

    for upload_id in store.list_expired(now):
        try:
            if not store.delete_session(upload_id, only_if_pending=True):
                continue
        except Exception as e:
            logger.error(
                "Failed to delete expired upload session",
                extra={"upload_id": upload_id, "error": str(e)},
                exc_info=True,
            )
            report.failed.append(upload_id)
            continue
        report.purged.append(upload_id)

    report.failed.extend(chunk_store.remove_sessions(report.purged))

    logger.info(
        "Expired upload sessions purged",
        extra={"purged_count": len(report.purged), "failed_count": len(report.failed)},
    )
    return report
