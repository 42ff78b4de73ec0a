"""
Session authentication for the Lingo API.

Sessions are issued by the external auth provider and stored in
``lingo.user_sessions``. A request is authenticated by presenting the session
token either as ``Authorization: Bearer <token>`` or in the session cookie.

Health, docs and metrics endpoints do not depend on ``get_current_user``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import SESSION_COOKIE_NAME
from db.models import UserSession
from deps import get_db

_logger = logging.getLogger("lingo.auth")

BEARER = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    session_token: str


def _extract_token(request: Request, credentials: HTTPAuthorizationCredentials | None) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(SESSION_COOKIE_NAME)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(BEARER),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the caller from a non-expired session, else 401."""
    token = _extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    result = await db.execute(
        select(UserSession).where(
            UserSession.session_token == token,
            UserSession.expires > datetime.now(timezone.utc),
        )
    )
    session = result.scalar_one_or_none()
    if session is None:
        _logger.info("Rejected request with unknown or expired session token")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CurrentUser(id=str(session.user_id), session_token=token)
