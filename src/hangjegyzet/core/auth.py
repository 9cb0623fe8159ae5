"""Caller resolution: authenticated user and owning tenant."""

import logging
from dataclasses import dataclass

import httpx
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from hangjegyzet.core.config import settings
from hangjegyzet.db.models import Profile
from hangjegyzet.db.session import get_db
from hangjegyzet.services.exceptions import NotAuthenticatedError, ProfileNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantContext:
    """Authenticated user and the organization they act for."""

    user_id: str
    organization_id: str


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def fetch_user_id(token: str) -> str | None:
    """Ask the auth service who owns ``token``.

    Returns:
        User id, or None if the token is rejected
    """
    if not settings.AUTH_SERVICE_URL:
        logger.error("AUTH_SERVICE_URL not configured")
        return None

    headers = {"Authorization": f"Bearer {token}"}
    if settings.AUTH_SERVICE_API_KEY:
        headers["apikey"] = settings.AUTH_SERVICE_API_KEY

    try:
        async with httpx.AsyncClient(timeout=settings.AUTH_TIMEOUT) as client:
            response = await client.get(
                f"{settings.AUTH_SERVICE_URL.rstrip('/')}/auth/v1/user", headers=headers
            )
    except httpx.HTTPError as e:
        logger.error("Auth service unreachable", extra={"error": str(e)})
        return None

    if response.status_code != 200:
        logger.info("Auth service rejected token", extra={"status_code": response.status_code})
        return None

    try:
        body = response.json()
    except ValueError:
        logger.error("Auth service returned a non-JSON body")
        return None
    return body.get("id") if isinstance(body, dict) else None


async def get_current_tenant(
    request: Request, db: Session = Depends(get_db)
) -> TenantContext:
    """FastAPI dependency resolving the caller's tenant.

    Raises:
        NotAuthenticatedError: No valid bearer token
        ProfileNotFoundError: The user has no organization profile
    """
    token = _bearer_token(request)
    user_id = await fetch_user_id(token) if token else None
    if not user_id:
        raise NotAuthenticatedError("Unauthorized")

    profile = db.get(Profile, user_id)
    if profile is None:
        raise ProfileNotFoundError("Profile not found")

    return TenantContext(user_id=user_id, organization_id=profile.organization_id)
