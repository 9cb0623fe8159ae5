"""Health check endpoint."""

from fastapi import APIRouter

from hangjegyzet.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Return service status, name and version.

    Touches no dependencies so it answers quickly during startup.
    """
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
    }
