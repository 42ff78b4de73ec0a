"""
Router tests for local model management.

The inference server is faked with httpx.MockTransport; failure kinds map to
404 (unknown model), 502 (server error) and 503 (unreachable).
"""
import json
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import routers.ollama as ollama_module
from auth import CurrentUser, get_current_user
from lingo_engine.lifecycle import ModelLifecycleManager
from lingo_engine.model_registry import ModelRegistry
from routers.ollama import configure_ollama, router

pytestmark = pytest.mark.api


class InferenceServer:
    def __init__(self):
        self.installed = [{"name": "small-model", "size": 900_000_000}]
        self.running = []
        self.refuse = False
        self.generate_status = 200
        self.pull_lines = [{"status": "pulling manifest"}, {"status": "success"}]
        self.deleted = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.refuse:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path
        if path == "/api/tags":
            return httpx.Response(200, json={"models": self.installed})
        if path == "/api/ps":
            return httpx.Response(200, json={"models": self.running})
        if path == "/api/generate":
            return httpx.Response(self.generate_status, json={"done": True})
        if path == "/api/delete":
            self.deleted.append(json.loads(request.content)["name"])
            return httpx.Response(200)
        if path == "/api/pull":
            if not json.loads(request.content)["stream"]:
                return httpx.Response(200, json={"status": "success"})
            body = "\n".join(json.dumps(line) for line in self.pull_lines)
            return httpx.Response(200, content=body.encode())
        return httpx.Response(404)


@pytest.fixture
def server() -> InferenceServer:
    return InferenceServer()


@pytest.fixture
def client(engine_config, catalog, make_ollama, server, user_id, monkeypatch):
    ollama = make_ollama(server)
    lifecycle = ModelLifecycleManager(engine_config, ollama, ModelRegistry(catalog), sleep=AsyncMock())

    monkeypatch.setattr(ollama_module, "_lifecycle", None)
    monkeypatch.setattr(ollama_module, "_client", None)
    configure_ollama(lifecycle, ollama)

    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=user_id, session_token="tok")
    return TestClient(app)


# ---------------------------------------------------------------------------
# manage-model
# ---------------------------------------------------------------------------

def test_load_then_status(client, server):
    resp = client.post("/ollama/manage-model", json={"action": "load", "modelId": "small-model"})
    assert resp.status_code == 200
    assert resp.json()["data"]["model"] == "small-model"

    server.running = [{"name": "small-model"}]
    status = client.post("/ollama/manage-model", json={"action": "status"}).json()
    assert status["data"]["activeModel"] == "small-model"
    assert status["data"]["loadedModels"][0]["name"] == "small-model"


def test_switch_reports_unloaded(client, server):
    server.running = [{"name": "large-model"}]
    resp = client.post("/ollama/manage-model", json={"action": "switch", "modelId": "small-model"})
    assert resp.status_code == 200
    assert resp.json()["data"]["results"]["unloaded"] == ["large-model"]


def test_unload_is_always_success(client, server):
    server.refuse = True
    resp = client.post("/ollama/manage-model", json={"action": "unload", "modelId": "small-model"})
    assert resp.status_code == 200
    assert resp.json()["success"] is True


def test_model_id_required(client):
    resp = client.post("/ollama/manage-model", json={"action": "load"})
    assert resp.status_code == 400


def test_invalid_action(client):
    resp = client.post("/ollama/manage-model", json={"action": "explode", "modelId": "x"})
    assert resp.status_code == 422


def test_unknown_model_is_404(client):
    resp = client.post("/ollama/manage-model", json={"action": "load", "modelId": "ghost:1b"})
    assert resp.status_code == 404
    assert resp.json()["kind"] == "unknown_model"


def test_server_error_is_502(client, server):
    server.generate_status = 500
    resp = client.post("/ollama/manage-model", json={"action": "load", "modelId": "small-model"})
    assert resp.status_code == 502
    assert resp.json()["success"] is False


def test_unreachable_is_503(client, server):
    server.refuse = True
    resp = client.post("/ollama/manage-model", json={"action": "load", "modelId": "small-model"})
    assert resp.status_code == 503
    assert resp.json()["kind"] == "unreachable"


def test_failed_switch_includes_results(client, server):
    server.running = [{"name": "large-model"}]
    server.generate_status = 500
    resp = client.post("/ollama/manage-model", json={"action": "switch", "modelId": "small-model"})
    assert resp.status_code == 502
    assert resp.json()["results"]["unloaded"] == ["large-model"]


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------

def test_list_models(client):
    data = client.get("/ollama/models").json()
    assert data["success"] is True
    assert data["models"][0]["name"] == "small-model"


def test_list_models_unreachable(client, server):
    server.refuse = True
    data = client.get("/ollama/models").json()
    assert data == {"success": False, "error": "Failed to connect to Ollama server", "models": []}


def test_server_status(client, server):
    assert client.get("/ollama/status").json() == {"installed": True, "running": True}
    server.refuse = True
    assert client.get("/ollama/status").json() == {"installed": False, "running": False}


def test_delete_model(client, server):
    resp = client.request("DELETE", "/ollama/delete", json={"modelId": "small-model"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Model small-model deleted successfully"
    assert server.deleted == ["small-model"]


def test_delete_model_failure(client, server):
    server.refuse = True
    resp = client.request("DELETE", "/ollama/delete", json={"modelId": "small-model"})
    assert resp.status_code == 500


def test_download_model(client):
    resp = client.post("/ollama/download", json={"modelId": "small-model"})
    assert resp.json()["success"] is True


def test_download_progress_stream(client):
    resp = client.post("/ollama/download-progress", json={"modelId": "small-model"})
    assert resp.status_code == 200
    frames = [json.loads(f[len("data: "):]) for f in resp.text.split("\n\n") if f]
    assert frames[0]["status"] == "pulling manifest"
    assert frames[-1]["success"] is True
    assert frames[-1]["progress"] == 100


def test_download_progress_unreachable(client, server):
    server.refuse = True
    resp = client.post("/ollama/download-progress", json={"modelId": "small-model"})
    frames = [json.loads(f[len("data: "):]) for f in resp.text.split("\n\n") if f]
    assert frames == [{"error": frames[0]["error"], "success": False}]
