"""
Router tests for the chat endpoints.

Mounts routers.chat on a bare FastAPI app with the session dependency
overridden; the orchestrator runs against the in-memory chat store and a
mocked inference server.
"""
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import routers.chat as chat_module
from auth import CurrentUser, get_current_user
from lingo_engine.chat_orchestrator import NO_API_KEY_MESSAGE, ChatOrchestrator
from lingo_engine.llm_gateway import LLMResponse
from lingo_engine.settings_store import SettingsStore
from routers.chat import configure_chat, router

pytestmark = pytest.mark.api

STREAM_BODY = (
    '{"message":{"content":"안녕"},"done":false}\n'
    '{"message":{"content":"하세요"},"done":true}\n'
)


@pytest.fixture
def settings_store(engine_config) -> SettingsStore:
    return SettingsStore(engine_config.settings_file)


@pytest.fixture
def client(engine_config, chat_store, settings_store, make_ollama, user_id, monkeypatch):
    gateway = MagicMock()
    gateway.complete = AsyncMock(return_value=LLMResponse(content="Hello there"))
    ollama = make_ollama(lambda request: httpx.Response(200, content=STREAM_BODY.encode()))
    orchestrator = ChatOrchestrator(engine_config, chat_store, settings_store, ollama, gateway)

    monkeypatch.setattr(chat_module, "_orchestrator", None)
    monkeypatch.setattr(chat_module, "_store", None)
    configure_chat(orchestrator, chat_store)

    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=user_id, session_token="tok")
    return TestClient(app)


# ---------------------------------------------------------------------------
# POST /chat
# ---------------------------------------------------------------------------

def test_chat_without_api_key_returns_fixed_reply(client, chat_store):
    resp = client.post("/chat", json={"message": "Hello"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["response"] == NO_API_KEY_MESSAGE
    assert data["chatRoomId"] in chat_store.rooms
    assert "warning" not in data


def test_chat_cloud_reply(client, chat_store, user_id):
    chat_store.api_keys[user_id] = "sk-user"
    resp = client.post("/chat", json={
        "message": "Hello",
        "languageSettings": {"mainLanguage": "한국어", "learningLanguage": "영어"},
    })
    assert resp.status_code == 200
    assert resp.json()["response"] == "Hello there"


def test_chat_rejects_empty_message(client):
    assert client.post("/chat", json={"message": ""}).status_code == 422


def test_chat_local_streams_sse(client, chat_store, settings_store):
    settings_store.save("local", model_id="small-model")

    resp = client.post("/chat", json={"message": "Hi"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    room_id = resp.headers["X-Chat-Room-Id"]
    frames = [line for line in resp.text.split("\n\n") if line]
    assert frames[0] == 'data: {"content": "안녕", "fullResponse": "안녕"}'
    assert frames[-1] == f'data: {{"done": true, "chatRoomId": "{room_id}"}}'
    assert chat_store.messages_for(room_id)[-1]["content"] == "안녕하세요"


def test_chat_local_stream_false_returns_json(client, settings_store, make_ollama):
    settings_store.save("local", model_id="small-model")
    chat_module._orchestrator.ollama = make_ollama(lambda request: httpx.Response(
        200, json={"message": {"content": "plain reply"}, "done": True},
    ))

    resp = client.post("/chat", json={"message": "Hi", "stream": False})

    assert resp.status_code == 200
    assert resp.json()["response"] == "plain reply"


def test_chat_local_server_error_is_500(client, settings_store, make_ollama):
    settings_store.save("local", model_id="small-model")
    chat_module._orchestrator.ollama = make_ollama(lambda request: httpx.Response(500, text="boom"))

    resp = client.post("/chat", json={"message": "Hi", "stream": False})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to process message"


def test_chat_language_warning_header(client, chat_store, settings_store, user_id):
    settings_store.save("local", model_id="small-model")
    room_id = chat_store.add_room(user_id, main_language="한국어", learning_language="영어")
    chat_store.fail_language_update = True

    resp = client.post("/chat", json={
        "message": "Hi",
        "chatRoomId": room_id,
        "languageSettings": {"mainLanguage": "한국어", "learningLanguage": "일본어"},
    })

    assert resp.status_code == 200
    assert resp.headers["X-Chat-Warning"] == "language-settings-not-saved"


def test_chat_not_configured_is_503(client, monkeypatch):
    monkeypatch.setattr(chat_module, "_orchestrator", None)
    assert client.post("/chat", json={"message": "Hi"}).status_code == 503


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def test_list_chat_rooms(client, chat_store, user_id):
    chat_store.add_room(user_id, title="mine")
    chat_store.add_room("someone-else", title="theirs")

    resp = client.post("/chat/history")

    assert resp.status_code == 200
    assert [r["title"] for r in resp.json()["chatRooms"]] == ["mine"]


def test_get_chat_room_requires_id(client):
    resp = client.get("/chat/history")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Chat room ID required"


def test_get_chat_room_of_other_user_is_404(client, chat_store):
    room_id = chat_store.add_room("someone-else")
    resp = client.get("/chat/history", params={"chatRoomId": room_id})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Chat room not found"


def test_get_chat_room_with_messages(client, chat_store, user_id):
    first = client.post("/chat", json={"message": "Hello"}).json()

    resp = client.get("/chat/history", params={"chatRoomId": first["chatRoomId"]})

    assert resp.status_code == 200
    data = resp.json()
    assert [m["role"] for m in data["messages"]] == ["user", "assistant"]
    assert data["languageSettings"] == {"mainLanguage": "한국어", "learningLanguage": "영어"}


# ---------------------------------------------------------------------------
# Analysis prompt
# ---------------------------------------------------------------------------

def test_analysis_prompt(client):
    resp = client.post("/chat/analysis-prompt", json={
        "type": "grammar",
        "assistantMessage": "I have been studying.",
        "languageSettings": {"mainLanguage": "한국어", "learningLanguage": "영어"},
    })
    assert resp.status_code == 200
    assert "I have been studying." in resp.json()["prompt"]


def test_analysis_prompt_requires_both_languages(client):
    resp = client.post("/chat/analysis-prompt", json={
        "type": "both",
        "assistantMessage": "text",
        "languageSettings": {"mainLanguage": "한국어"},
    })
    assert resp.status_code == 400


def test_analysis_prompt_rejects_unknown_type(client):
    resp = client.post("/chat/analysis-prompt", json={
        "type": "pronunciation",
        "assistantMessage": "text",
        "languageSettings": {"mainLanguage": "한국어", "learningLanguage": "영어"},
    })
    assert resp.status_code == 422
