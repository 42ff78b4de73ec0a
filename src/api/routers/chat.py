"""
Chat API — tutor conversation, history and analysis prompts.

  POST /api/chat                   — send a message (SSE for the local backend, JSON otherwise)
  POST /api/chat/history           — list the caller's chat rooms
  GET  /api/chat/history?chatRoomId= — one room with its messages
  POST /api/chat/analysis-prompt   — grammar / vocabulary analysis prompt
"""
import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from auth import CurrentUser, get_current_user
from lingo_engine.chat_orchestrator import ChatOrchestrator, ChatRequest, ChatStore
from lingo_engine.exceptions import InferenceServerError
from lingo_engine.prompts import LanguagePair, build_analysis_prompt
from lingo_engine.streaming import SSE_MEDIA_TYPE

logger = logging.getLogger("lingo.api.chat")

router = APIRouter(tags=["Chat"])


# ── Pydantic Models ──────────────────────────────────────────────────────────


class LanguageSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    main_language: str | None = Field(default=None, alias="mainLanguage")
    learning_language: str | None = Field(default=None, alias="learningLanguage")


class HistoryItem(BaseModel):
    role: str
    content: str = ""


class ChatBody(BaseModel):
    """Request body for one chat turn."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, max_length=20000)
    history: list[HistoryItem] = Field(default_factory=list)
    chat_room_id: str | None = Field(default=None, alias="chatRoomId")
    language_settings: LanguageSettings | None = Field(default=None, alias="languageSettings")
    stream: bool = True


class AnalysisPromptBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["grammar", "vocabulary", "both"]
    assistant_message: str = Field(..., min_length=1, alias="assistantMessage")
    language_settings: LanguageSettings = Field(alias="languageSettings")


# ── Wiring ───────────────────────────────────────────────────────────────────

_orchestrator: ChatOrchestrator | None = None
_store: ChatStore | None = None


def configure_chat(orchestrator: ChatOrchestrator, store: ChatStore) -> None:
    """Called once during app startup in src/api/main.py."""
    global _orchestrator, _store
    _orchestrator = orchestrator
    _store = store
    logger.info("Chat router configured")


def _get_orchestrator() -> ChatOrchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Chat service not initialized")
    return _orchestrator


def _get_store() -> ChatStore:
    if _store is None:
        raise HTTPException(status_code=503, detail="Chat service not initialized")
    return _store


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/chat")
async def send_message(
    body: ChatBody,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: ChatOrchestrator = Depends(_get_orchestrator),
):
    settings = body.language_settings or LanguageSettings()
    request = ChatRequest(
        message=body.message,
        history=[item.model_dump() for item in body.history],
        chat_room_id=body.chat_room_id,
        main_language=settings.main_language,
        learning_language=settings.learning_language,
        stream=body.stream,
    )
    turn = await orchestrator.prepare(user.id, request)

    if turn.streams:
        headers = {"Cache-Control": "no-cache", "X-Chat-Room-Id": turn.room.id}
        if turn.warning:
            headers["X-Chat-Warning"] = "language-settings-not-saved"
        return StreamingResponse(
            orchestrator.stream(turn), media_type=SSE_MEDIA_TYPE, headers=headers,
        )

    try:
        reply = await orchestrator.complete(turn)
    except InferenceServerError as e:
        logger.error("Local inference failed for room %s: %s", turn.room.id, e)
        raise HTTPException(status_code=500, detail="Failed to process message")
    return reply.to_dict()


@router.post("/chat/history")
async def list_chat_rooms(
    user: CurrentUser = Depends(get_current_user),
    store: ChatStore = Depends(_get_store),
) -> dict[str, Any]:
    return {"chatRooms": await store.list_rooms(user.id)}


@router.get("/chat/history")
async def get_chat_room(
    chat_room_id: str | None = Query(default=None, alias="chatRoomId"),
    user: CurrentUser = Depends(get_current_user),
    store: ChatStore = Depends(_get_store),
) -> dict[str, Any]:
    if not chat_room_id:
        raise HTTPException(status_code=400, detail="Chat room ID required")
    detail = await store.get_room_with_messages(chat_room_id, user.id)
    if detail is None:
        raise HTTPException(status_code=404, detail="Chat room not found")
    return detail


@router.post("/chat/analysis-prompt")
async def analysis_prompt(body: AnalysisPromptBody) -> dict[str, str]:
    settings = body.language_settings
    if not settings.main_language or not settings.learning_language:
        raise HTTPException(status_code=400, detail="languageSettings requires both languages")
    pair = LanguagePair(settings.main_language, settings.learning_language)
    return {"prompt": build_analysis_prompt(body.type, body.assistant_message, pair)}
