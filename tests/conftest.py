"""
Lingo Test Suite — Shared Fixtures

Engine tests run fully in-process: the inference server is faked with
``httpx.MockTransport`` and persistence with an in-memory ``ChatStore``.
Router tests mount a single router on a bare FastAPI app and override the
auth and DB dependencies.
"""
import dataclasses
import sys
import uuid
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

_ROOT = Path(__file__).resolve().parent.parent
for _p in (str(_ROOT), str(_ROOT / "src" / "api")):
    if _p not in sys.path:
        sys.path.insert(0, _p)

from lingo_engine.chat_orchestrator import ChatRoomRef
from lingo_engine.config import EngineConfig
from lingo_engine.ollama_client import OllamaClient


def pytest_configure(config):
    config.addinivalue_line("markers", "engine: tests for lingo_engine modules")
    config.addinivalue_line("markers", "api: router tests against a router-only FastAPI app")


# ── Config / catalog ─────────────────────────────────────────────────────────

@pytest.fixture
def engine_config(tmp_path) -> EngineConfig:
    return EngineConfig(
        ollama_url="http://ollama.test:11434",
        settings_file=str(tmp_path / "model-settings.json"),
        switch_grace_seconds=2.0,
    )


@pytest.fixture
def catalog() -> dict[str, Any]:
    return {
        "schema_version": 1,
        "derived_keep_alive": {"small": "30m", "medium": "15m", "large": "10m"},
        "local_models": {
            "small-model": {"size": "900MB", "keep_alive": "20m", "size_class": "small"},
            "large-model": {"size": "40GB", "keep_alive": "10m", "size_class": "large"},
        },
        "languages": {"ko": "한국어", "en": "영어", "ja": "일본어"},
        "recommendations": [],
    }


# ── Inference server fake ────────────────────────────────────────────────────

@pytest.fixture
def make_ollama(engine_config) -> Callable[..., OllamaClient]:
    """Build an OllamaClient whose transport is ``handler(request) -> Response``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> OllamaClient:
        http_client = httpx.AsyncClient(
            base_url=engine_config.ollama_url,
            transport=httpx.MockTransport(handler),
        )
        return OllamaClient(engine_config, http_client=http_client)

    return _make


# ── In-memory chat store ─────────────────────────────────────────────────────

class FakeChatStore:
    """In-memory ``ChatStore`` recording every write."""

    def __init__(self):
        self.rooms: dict[str, dict[str, Any]] = {}
        self.messages: list[dict[str, str]] = []
        self.api_keys: dict[str, str] = {}
        self.fail_language_update = False
        self.language_updates: list[tuple[str, str, str]] = []

    def add_room(self, user_id: str, title: str = "existing",
                 main_language: str | None = None, learning_language: str | None = None) -> str:
        room_id = str(uuid.uuid4())
        self.rooms[room_id] = {
            "user_id": user_id,
            "ref": ChatRoomRef(room_id, title, main_language, learning_language),
        }
        return room_id

    def messages_for(self, room_id: str) -> list[dict[str, str]]:
        return [m for m in self.messages if m["room_id"] == room_id]

    async def get_room(self, room_id, user_id):
        entry = self.rooms.get(room_id)
        if entry is None or entry["user_id"] != user_id:
            return None
        return dataclasses.replace(entry["ref"])

    async def create_room(self, user_id, title, main_language, learning_language):
        room_id = self.add_room(user_id, title, main_language, learning_language)
        return dataclasses.replace(self.rooms[room_id]["ref"])

    async def update_room_languages(self, room_id, main_language, learning_language):
        if self.fail_language_update:
            raise RuntimeError("database unavailable")
        ref = self.rooms[room_id]["ref"]
        ref.main_language = main_language
        ref.learning_language = learning_language
        self.language_updates.append((room_id, main_language, learning_language))

    async def add_message(self, room_id, role, content):
        message_id = str(uuid.uuid4())
        self.messages.append({"id": message_id, "room_id": room_id, "role": role, "content": content})
        return message_id

    async def get_user_api_key(self, user_id):
        return self.api_keys.get(user_id)

    async def list_rooms(self, user_id):
        return [
            {"id": rid, "title": e["ref"].title, "updatedAt": None,
             "lastMessage": (self.messages_for(rid) or [{}])[-1].get("content")}
            for rid, e in self.rooms.items() if e["user_id"] == user_id
        ]

    async def get_room_with_messages(self, room_id, user_id):
        ref = await self.get_room(room_id, user_id)
        if ref is None:
            return None
        return {
            "chatRoom": {"id": ref.id, "title": ref.title},
            "languageSettings": {
                "mainLanguage": ref.main_language,
                "learningLanguage": ref.learning_language,
            },
            "messages": [
                {"id": m["id"], "content": m["content"], "role": m["role"], "timestamp": None}
                for m in self.messages_for(room_id)
            ],
        }


@pytest.fixture
def chat_store() -> FakeChatStore:
    return FakeChatStore()


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())
