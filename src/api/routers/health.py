"""
Health endpoints.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from config import API_VERSION, STARTUP_TIME
from db.session import check_database_health

router = APIRouter(tags=["Health"])
logger = logging.getLogger("lingo.api.health")


class HealthResponse(BaseModel):
    status: str
    uptime_seconds: int
    database: str
    version: str
    missing_tables: list[str] = []


@router.get("/health", response_model=HealthResponse)
async def health_check():
    uptime = (datetime.now(timezone.utc) - STARTUP_TIME).total_seconds()
    database = "connected"
    missing: list[str] = []
    try:
        db_health = await check_database_health()
        missing = db_health["missing"]
    except Exception as e:
        logger.warning("Health check database query failed: %s", e)
        database = "unreachable"
    if missing:
        logger.warning("Health check: missing tables %s", missing)
    return HealthResponse(
        status="healthy" if database == "connected" and not missing else "degraded",
        uptime_seconds=int(uptime),
        database=database,
        version=API_VERSION,
        missing_tables=missing,
    )
