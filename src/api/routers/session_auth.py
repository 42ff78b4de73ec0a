"""
Session extension endpoint.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from auth import CurrentUser, get_current_user
from config import SESSION_EXTEND_HOURS
from db.models import UserSession
from deps import get_db

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger("lingo.api.auth")


@router.post("/extend-session")
async def extend_session(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Push the caller's session expiry to now + SESSION_EXTEND_HOURS."""
    new_expires = datetime.now(timezone.utc) + timedelta(hours=SESSION_EXTEND_HOURS)
    await db.execute(
        update(UserSession)
        .where(
            UserSession.session_token == user.session_token,
            UserSession.user_id == uuid.UUID(user.id),
        )
        .values(expires=new_expires)
    )
    await db.commit()
    logger.info("Session extended for user %s until %s", user.id, new_expires.isoformat())
    return {
        "success": True,
        "newExpires": new_expires.isoformat(),
        "message": f"세션이 {SESSION_EXTEND_HOURS}시간 연장되었습니다",
    }
