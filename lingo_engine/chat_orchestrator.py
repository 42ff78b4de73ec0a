"""
Chat Orchestrator — one user turn from request to persisted reply.

    turn = await orchestrator.prepare(user_id, ChatRequest(message="Hello"))
    if turn.streams:
        frames = orchestrator.stream(turn)      # SSE frames for the local backend
    else:
        reply = await orchestrator.complete(turn)

``prepare`` resolves the room and language pair, builds the system prompt and
persists the user message. Persistence goes through a ``ChatStore`` so the
orchestrator never touches the ORM directly.
"""
import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol

from lingo_engine.config import EngineConfig
from lingo_engine.exceptions import (
    InferenceServerError,
    InferenceUnavailableError,
    LLMError,
)
from lingo_engine.llm_gateway import LLMGateway
from lingo_engine.ollama_client import OllamaClient
from lingo_engine.prompts import LanguagePair, build_system_prompt
from lingo_engine.settings_store import ModelSettings, SettingsStore
from lingo_engine.streaming import (
    GENERIC_LOCAL_ERROR_MESSAGE,
    StreamAccumulator,
    classify_transport_error,
    format_sse,
    relay_chunks,
)

logger = logging.getLogger("lingo.engine.chat")

NO_API_KEY_MESSAGE = "OpenAI API 키가 설정되지 않았습니다. 설정에서 API 키를 입력해주세요."
NO_MODEL_MESSAGE = "모델이 설정되지 않았습니다. 설정에서 사용할 모델을 선택해주세요."
LANGUAGE_UPDATE_WARNING = "언어 설정을 저장하지 못했습니다. 이전 언어 설정으로 대화를 계속합니다."

BACKEND_CLOUD = "cloud"
BACKEND_LOCAL = "local"
BACKEND_UNCONFIGURED = "unconfigured"


@dataclass
class ChatRoomRef:
    id: str
    title: str
    main_language: str | None = None
    learning_language: str | None = None

    @property
    def language_pair(self) -> LanguagePair | None:
        if self.main_language and self.learning_language:
            return LanguagePair(self.main_language, self.learning_language)
        return None


class ChatStore(Protocol):
    """Persistence needed by the orchestrator and the history endpoints."""

    async def get_room(self, room_id: str, user_id: str) -> ChatRoomRef | None: ...

    async def create_room(
        self, user_id: str, title: str, main_language: str | None, learning_language: str | None
    ) -> ChatRoomRef: ...

    async def update_room_languages(
        self, room_id: str, main_language: str, learning_language: str
    ) -> None: ...

    async def add_message(self, room_id: str, role: str, content: str) -> str: ...

    async def get_user_api_key(self, user_id: str) -> str | None: ...

    async def list_rooms(self, user_id: str) -> list[dict[str, Any]]: ...

    async def get_room_with_messages(self, room_id: str, user_id: str) -> dict[str, Any] | None: ...


@dataclass
class ChatRequest:
    message: str
    history: list[dict[str, Any]] = field(default_factory=list)
    chat_room_id: str | None = None
    main_language: str | None = None
    learning_language: str | None = None
    stream: bool = True

    @property
    def language_pair(self) -> LanguagePair | None:
        if self.main_language and self.learning_language:
            return LanguagePair(self.main_language, self.learning_language)
        return None


@dataclass
class ChatTurn:
    """Everything resolved before dispatching to a backend."""
    user_id: str
    room: ChatRoomRef
    pair: LanguagePair | None
    messages: list[dict[str, str]]
    settings: ModelSettings
    backend: str
    api_key: str | None = None
    stream_requested: bool = True
    warning: str | None = None

    @property
    def streams(self) -> bool:
        return self.backend == BACKEND_LOCAL and self.stream_requested


@dataclass
class ChatReply:
    response: str
    chat_room_id: str
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"response": self.response, "chatRoomId": self.chat_room_id}
        if self.warning:
            body["warning"] = self.warning
        return body


def make_title(message: str, limit: int = 50) -> str:
    return message[:limit] + ("..." if len(message) > limit else "")


def cloud_error_message(exc: LLMError) -> str:
    """User-facing explanation of a cloud failure."""
    status = exc.status_code
    if status == 401:
        return "OpenAI API 인증에 실패했습니다 (401). 설정에서 API 키가 올바른지 확인해주세요."
    if status == 429:
        return "OpenAI API 사용량 한도를 초과했습니다 (429). 잠시 후 다시 시도하거나 요금제를 확인해주세요."
    if status:
        return f"OpenAI API 오류가 발생했습니다 ({status}). API 키와 네트워크 상태를 확인해주세요."
    return "OpenAI API 호출에 실패했습니다. API 키가 설정되어 있는지, 네트워크 연결이 정상인지 확인해주세요."


def _history_messages(history: list[dict[str, Any]]) -> list[dict[str, str]]:
    return [
        {"role": item["role"], "content": str(item.get("content", ""))}
        for item in history
        if isinstance(item, dict) and item.get("role") in ("user", "assistant")
    ]


class ChatOrchestrator:
    def __init__(
        self,
        config: EngineConfig,
        store: ChatStore,
        settings_store: SettingsStore,
        ollama: OllamaClient,
        gateway: LLMGateway,
    ):
        self.config = config
        self.store = store
        self.settings_store = settings_store
        self.ollama = ollama
        self.gateway = gateway

    def _default_pair(self) -> LanguagePair | None:
        main = self.config.default_main_language
        learning = self.config.default_learning_language
        if main and learning:
            return LanguagePair(main, learning)
        return None

    async def _resolve_room(
        self, user_id: str, request: ChatRequest
    ) -> tuple[ChatRoomRef, LanguagePair | None, str | None]:
        requested = request.language_pair
        room = None
        if request.chat_room_id:
            room = await self.store.get_room(request.chat_room_id, user_id)

        if room is None:
            pair = requested or self._default_pair()
            room = await self.store.create_room(
                user_id,
                make_title(request.message, self.config.title_max_chars),
                pair.main_language if pair else None,
                pair.learning_language if pair else None,
            )
            logger.info("Created chat room %s for user %s", room.id, user_id)
            return room, pair, None

        current = room.language_pair
        if requested is None:
            return room, current or self._default_pair(), None
        if requested == current:
            return room, current, None

        try:
            await self.store.update_room_languages(
                room.id, requested.main_language, requested.learning_language
            )
        except Exception as e:
            logger.warning("Language pair update failed for room %s, keeping previous: %s", room.id, e)
            return room, current or self._default_pair(), LANGUAGE_UPDATE_WARNING
        room.main_language = requested.main_language
        room.learning_language = requested.learning_language
        return room, requested, None

    async def _resolve_backend(self, user_id: str, settings: ModelSettings) -> tuple[str, str | None]:
        if settings.is_local:
            return (BACKEND_LOCAL, None) if settings.model_id else (BACKEND_UNCONFIGURED, None)
        api_key = settings.openai_api_key or await self.store.get_user_api_key(user_id)
        if not api_key:
            return BACKEND_UNCONFIGURED, None
        return BACKEND_CLOUD, api_key

    async def prepare(self, user_id: str, request: ChatRequest) -> ChatTurn:
        settings = self.settings_store.load()
        room, pair, warning = await self._resolve_room(user_id, request)

        messages = [{"role": "system", "content": build_system_prompt(pair)}]
        messages.extend(_history_messages(request.history))
        messages.append({"role": "user", "content": request.message})

        await self.store.add_message(room.id, "user", request.message)

        backend, api_key = await self._resolve_backend(user_id, settings)
        logger.info(
            "Chat turn in room %s via %s (model=%s)",
            room.id, backend, settings.model_id if settings.is_local else self.config.openai_model,
        )
        return ChatTurn(
            user_id=user_id,
            room=room,
            pair=pair,
            messages=messages,
            settings=settings,
            backend=backend,
            api_key=api_key,
            stream_requested=request.stream,
            warning=warning,
        )

    async def complete(self, turn: ChatTurn) -> ChatReply:
        """Non-streaming dispatch; the reply text is always persisted."""
        if turn.backend == BACKEND_UNCONFIGURED:
            text = NO_MODEL_MESSAGE if turn.settings.is_local else NO_API_KEY_MESSAGE
        elif turn.backend == BACKEND_CLOUD:
            try:
                text = (await self.gateway.complete(turn.messages, api_key=turn.api_key)).content
            except LLMError as e:
                text = cloud_error_message(e)
        else:
            try:
                text = await self.ollama.chat(turn.settings.model_id, turn.messages)
            except InferenceUnavailableError as e:
                logger.error("Local model call failed: %s", e)
                text = classify_transport_error(e)

        await self.store.add_message(turn.room.id, "assistant", text)
        return ChatReply(response=text, chat_room_id=turn.room.id, warning=turn.warning)

    async def stream(self, turn: ChatTurn) -> AsyncIterator[str]:
        """
        SSE frames for the local backend.

        The assistant reply is persisted only after the upstream stream ends
        cleanly; a transport failure or an in-band server error yields a
        terminal ``{error}`` frame and persists nothing.
        """
        acc = StreamAccumulator()
        model_id = turn.settings.model_id
        try:
            async with aclosing(self.ollama.stream_chat_lines(model_id, turn.messages)) as lines:
                async with aclosing(relay_chunks(lines, acc)) as frames:
                    async for frame in frames:
                        yield frame
        except InferenceUnavailableError as e:
            logger.error("Stream from %s failed after %d chunks: %s", model_id, acc.chunks, e)
            yield format_sse({"error": classify_transport_error(e)})
            return
        except InferenceServerError as e:
            logger.error("Inference server rejected stream for %s: %s", model_id, e)
            yield format_sse({"error": GENERIC_LOCAL_ERROR_MESSAGE})
            return
        except asyncio.CancelledError:
            logger.info("Client disconnected from room %s after %d chunks", turn.room.id, acc.chunks)
            raise

        await self.store.add_message(turn.room.id, "assistant", acc.full_response)
        yield format_sse({"done": True, "chatRoomId": turn.room.id})
