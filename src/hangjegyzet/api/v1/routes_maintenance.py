"""Internal maintenance endpoints, called by a scheduler."""

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from hangjegyzet.api.v1.routes_upload import get_chunk_store
from hangjegyzet.core.config import settings
from hangjegyzet.db.session import get_db
from hangjegyzet.services.session_sweeper import purge_expired_sessions
from hangjegyzet.storage.chunk_store import ChunkStore

router = APIRouter(prefix="/internal/maintenance", tags=["maintenance"])
logger = logging.getLogger(__name__)


def require_maintenance_token(
    x_maintenance_token: str | None = Header(None),
) -> None:
    if not settings.MAINTENANCE_TOKEN:
        raise HTTPException(status_code=404, detail="Not found")
    if not x_maintenance_token or not hmac.compare_digest(
        x_maintenance_token, settings.MAINTENANCE_TOKEN
    ):
        raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/purge-expired-uploads", dependencies=[Depends(require_maintenance_token)])
async def purge_expired_uploads(
    db: Session = Depends(get_db),
    chunks: ChunkStore = Depends(get_chunk_store),
) -> dict:
    """Delete abandoned upload sessions and their chunk files."""
    report = purge_expired_sessions(db, chunks)
    return {"purged": len(report.purged), "failed": report.failed}
