"""Staff authentication for the JSON API (HTTP Basic).

Username is the staff member's email, password the shared API_PASSWORD. The
resolved StaffUser is the request context of every scheduling operation: it
fixes the organization scope, the role used for cancel permissions and the
name written into cancellation notes.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcrm.config import settings
from fieldcrm.db.engine import get_session
from fieldcrm.models.staff import StaffUser

logger = logging.getLogger(__name__)

security = HTTPBasic()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


async def verify_staff(
    credentials: HTTPBasicCredentials = Depends(security),
    db: AsyncSession = Depends(get_session),
) -> StaffUser:
    """Dependency resolving the authenticated StaffUser (401/503 on failure)."""
    shared_password = settings.security.api_password
    if not shared_password:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API_PASSWORD not configured",
        )

    if not secrets.compare_digest(credentials.password.encode(), shared_password.encode()):
        logger.warning("Rejected API login for %s: bad password", credentials.username)
        raise _unauthorized("Invalid credentials")

    staff = (
        await db.execute(select(StaffUser).where(StaffUser.email == credentials.username))
    ).scalar_one_or_none()
    if staff is None:
        logger.warning("Rejected API login: no staff user %s", credentials.username)
        raise _unauthorized("Unknown staff user")

    return staff
