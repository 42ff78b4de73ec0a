"""
Local model management — lifecycle and catalogue of the inference server.

  POST   /api/ollama/manage-model       — load | unload | switch | status
  GET    /api/ollama/models             — installed models
  GET    /api/ollama/status             — is the inference server up
  DELETE /api/ollama/delete             — remove an installed model
  POST   /api/ollama/download           — blocking pull
  POST   /api/ollama/download-progress  — pull with SSE progress
"""
import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from auth import CurrentUser, get_current_user
from lingo_engine.exceptions import InferenceServerError, InferenceUnavailableError
from lingo_engine.lifecycle import (
    KIND_SERVER_ERROR,
    KIND_UNKNOWN_MODEL,
    KIND_UNREACHABLE,
    LifecycleResult,
    ModelLifecycleManager,
)
from lingo_engine.ollama_client import OllamaClient
from lingo_engine.streaming import SSE_MEDIA_TYPE, format_sse, relay_pull_progress

logger = logging.getLogger("lingo.api.ollama")

router = APIRouter(prefix="/ollama", tags=["Local Models"])

_FAILURE_STATUS = {
    KIND_UNKNOWN_MODEL: 404,
    KIND_UNREACHABLE: 503,
    KIND_SERVER_ERROR: 502,
}


class ManageModelBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    action: Literal["load", "unload", "switch", "status"]
    model_id: str | None = Field(default=None, alias="modelId")


class ModelIdBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_id: str = Field(..., min_length=1, alias="modelId")


# ── Wiring ───────────────────────────────────────────────────────────────────

_lifecycle: ModelLifecycleManager | None = None
_client: OllamaClient | None = None


def configure_ollama(lifecycle: ModelLifecycleManager, client: OllamaClient) -> None:
    """Called once during app startup in src/api/main.py."""
    global _lifecycle, _client
    _lifecycle = lifecycle
    _client = client
    logger.info("Local model router configured (%s)", client.base_url)


def _get_lifecycle() -> ModelLifecycleManager:
    if _lifecycle is None:
        raise HTTPException(status_code=503, detail="Model lifecycle not initialized")
    return _lifecycle


def _get_client() -> OllamaClient:
    if _client is None:
        raise HTTPException(status_code=503, detail="Inference client not initialized")
    return _client


def _respond(result: LifecycleResult) -> JSONResponse:
    status = 200 if result.success else _FAILURE_STATUS.get(result.kind, 500)
    body = result.to_dict()
    if not result.success and result.data:
        body.update(result.data)
    return JSONResponse(status_code=status, content=body)


# ── Lifecycle ────────────────────────────────────────────────────────────────


@router.post("/manage-model")
async def manage_model(
    body: ManageModelBody,
    user: CurrentUser = Depends(get_current_user),
    lifecycle: ModelLifecycleManager = Depends(_get_lifecycle),
):
    if body.action == "status":
        return _respond(await lifecycle.status())
    if not body.model_id:
        raise HTTPException(status_code=400, detail="modelId is required")

    logger.info("User %s requested %s of %s", user.id, body.action, body.model_id)
    if body.action == "load":
        result = await lifecycle.load(body.model_id)
    elif body.action == "unload":
        result = await lifecycle.unload(body.model_id)
    else:
        result = await lifecycle.switch(body.model_id)
    return _respond(result)


# ── Catalogue ────────────────────────────────────────────────────────────────


@router.get("/models")
async def list_models(client: OllamaClient = Depends(_get_client)) -> dict[str, Any]:
    try:
        models = await client.list_models()
    except (InferenceUnavailableError, InferenceServerError) as e:
        logger.warning("Failed to fetch installed models: %s", e)
        return {"success": False, "error": "Failed to connect to Ollama server", "models": []}
    return {"success": True, "models": models}


@router.get("/status")
async def server_status(client: OllamaClient = Depends(_get_client)) -> dict[str, bool]:
    running = await client.is_running()
    return {"installed": running, "running": running}


@router.delete("/delete")
async def delete_model(
    body: ModelIdBody,
    user: CurrentUser = Depends(get_current_user),
    client: OllamaClient = Depends(_get_client),
) -> dict[str, Any]:
    try:
        await client.delete(body.model_id)
    except (InferenceUnavailableError, InferenceServerError) as e:
        logger.error("Failed to delete model %s: %s", body.model_id, e)
        raise HTTPException(status_code=500, detail="Failed to delete model from Ollama")
    logger.info("User %s deleted model %s", user.id, body.model_id)
    return {"success": True, "message": f"Model {body.model_id} deleted successfully"}


@router.post("/download")
async def download_model(
    body: ModelIdBody,
    user: CurrentUser = Depends(get_current_user),
    client: OllamaClient = Depends(_get_client),
) -> dict[str, Any]:
    try:
        await client.pull(body.model_id)
    except InferenceUnavailableError as e:
        logger.error("Download of %s failed: %s", body.model_id, e)
        if "timeout" in str(e).lower():
            return {
                "success": False,
                "error": "Download timeout. The model might still be downloading in the background.",
            }
        return {"success": False, "error": str(e)}
    except InferenceServerError as e:
        logger.error("Download of %s rejected: %s", body.model_id, e)
        return {"success": False, "error": str(e)}
    return {
        "success": True,
        "message": f"Model {body.model_id} downloaded successfully",
        "progress": 100,
        "status": "success",
    }


@router.post("/download-progress")
async def download_model_progress(
    body: ModelIdBody,
    user: CurrentUser = Depends(get_current_user),
    client: OllamaClient = Depends(_get_client),
):
    async def frames():
        try:
            async for frame in relay_pull_progress(body.model_id, client.pull_stream(body.model_id)):
                yield frame
        except (InferenceUnavailableError, InferenceServerError) as e:
            logger.error("Streaming download of %s failed: %s", body.model_id, e)
            yield format_sse({"error": str(e), "success": False})

    return StreamingResponse(
        frames(), media_type=SSE_MEDIA_TYPE, headers={"Cache-Control": "no-cache"},
    )
