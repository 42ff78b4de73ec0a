"""
Settings endpoints — backend selection and the caller's OpenAI key.

  GET/POST /api/settings/model   — process-wide model settings (JSON file)
  GET/POST /api/settings/openai  — per-user OpenAI API key (users table)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth import CurrentUser, get_current_user
from db.models import User
from deps import get_db
from lingo_engine.exceptions import SettingsError
from lingo_engine.settings_store import SettingsStore
from schemas.requests import ModelSettingsBody, OpenAIKeyBody

router = APIRouter(prefix="/settings", tags=["Settings"])
logger = logging.getLogger("lingo.api.settings")

_settings_store: SettingsStore | None = None


def configure_settings(store: SettingsStore) -> None:
    """Called once during app startup in src/api/main.py."""
    global _settings_store
    _settings_store = store
    logger.info("Settings router configured (%s)", store.path)


def _get_settings_store() -> SettingsStore:
    if _settings_store is None:
        raise HTTPException(status_code=503, detail="Settings store not initialized")
    return _settings_store


def mask_key(key: str | None) -> str | None:
    return "***" + key[-4:] if key else None


# ── Model settings ───────────────────────────────────────────────────────────


@router.get("/model")
async def get_model_settings(store: SettingsStore = Depends(_get_settings_store)):
    body = store.load().to_public()
    if body.get("openaiApiKey"):
        body["openaiApiKey"] = mask_key(body["openaiApiKey"])
    return body


@router.post("/model")
async def update_model_settings(
    body: ModelSettingsBody,
    user: CurrentUser = Depends(get_current_user),
    store: SettingsStore = Depends(_get_settings_store),
):
    if body.model_type not in ("openai", "local"):
        raise HTTPException(status_code=400, detail="Invalid model type")
    try:
        settings = store.save(body.model_type, body.model_id, body.openai_api_key)
    except SettingsError as e:
        raise HTTPException(status_code=500, detail="Failed to update settings") from e
    logger.info("User %s switched backend to %s", user.id, settings.model_type)
    public = settings.to_public()
    if public.get("openaiApiKey"):
        public["openaiApiKey"] = mask_key(public["openaiApiKey"])
    return {"success": True, "settings": public}


# ── Per-user OpenAI key ──────────────────────────────────────────────────────


@router.get("/openai")
async def get_openai_key(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User.openai_api_key).where(User.id == uuid.UUID(user.id)))
    return {"apiKey": mask_key(result.scalar_one_or_none())}


@router.post("/openai")
async def save_openai_key(
    body: OpenAIKeyBody,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not body.api_key or not body.api_key.startswith("sk-"):
        raise HTTPException(status_code=400, detail="Invalid API key format")
    await db.execute(
        update(User).where(User.id == uuid.UUID(user.id)).values(openai_api_key=body.api_key)
    )
    await db.commit()
    return {"success": True}
