"""
Streaming relay — re-emits inference-server NDJSON chunks as SSE frames.

Frame shapes (``data: <json>\\n\\n``, UTF-8, non-ASCII unescaped):
    {"content": "<increment>", "fullResponse": "<buffer so far>"}
    {"done": true, "chatRoomId": "<room id>"}
    {"error": "<user-facing message>"}
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

from lingo_engine.exceptions import InferenceServerError

logger = logging.getLogger("lingo.engine.stream")

SSE_MEDIA_TYPE = "text/event-stream"

TIMEOUT_MESSAGE = (
    "응답 시간이 초과되었습니다. 로컬 모델이 처리하는데 시간이 오래 걸릴 수 있습니다. "
    "잠시 후 다시 시도해주세요."
)
UNREACHABLE_MESSAGE = "로컬 모델 서버에 연결할 수 없습니다. Ollama가 실행 중인지 확인해주세요."
GENERIC_LOCAL_ERROR_MESSAGE = (
    "로컬 모델에서 오류가 발생했습니다. Ollama가 실행 중이고 모델이 설치되어 있는지 확인해주세요."
)


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def classify_transport_error(exc: BaseException) -> str:
    """Map a transport failure to one of three user-facing explanations."""
    text = f"{type(exc).__name__} {exc}".lower()
    if "timeout" in text or "timed out" in text:
        return TIMEOUT_MESSAGE
    if "refused" in text or "connect" in text:
        return UNREACHABLE_MESSAGE
    return GENERIC_LOCAL_ERROR_MESSAGE


@dataclass
class StreamChunk:
    content: str = ""
    done: bool = False
    error: str | None = None


def parse_chunk(line: str) -> StreamChunk | None:
    """Decode one NDJSON line; ``None`` for malformed input."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed stream chunk: %r", line[:200])
        return None
    if not isinstance(data, dict):
        logger.warning("Skipping non-object stream chunk: %r", line[:200])
        return None
    if data.get("error"):
        return StreamChunk(done=True, error=str(data["error"]))
    message = data.get("message") or {}
    content = (message.get("content") or "") if isinstance(message, dict) else None
    if not isinstance(content, str):
        logger.warning("Skipping stream chunk with unexpected message shape: %r", line[:200])
        return None
    return StreamChunk(content=content, done=bool(data.get("done")))


@dataclass
class StreamAccumulator:
    """Running buffer of everything emitted so far."""
    full_response: str = ""
    chunks: int = 0
    done: bool = False


async def relay_chunks(
    lines: AsyncIterator[str], acc: StreamAccumulator
) -> AsyncIterator[str]:
    """
    Yield ``{content, fullResponse}`` frames for each non-empty increment.

    Stops after the upstream ``done`` chunk; the caller emits the terminal
    frame once the reply is persisted. An in-band ``{"error": ...}`` chunk
    raises ``InferenceServerError``.
    """
    async for line in lines:
        chunk = parse_chunk(line)
        if chunk is None:
            continue
        if chunk.error:
            raise InferenceServerError(f"Inference server error mid-stream: {chunk.error}")
        if chunk.content:
            acc.full_response += chunk.content
            acc.chunks += 1
            yield format_sse({"content": chunk.content, "fullResponse": acc.full_response})
        if chunk.done:
            acc.done = True
            break


def pull_progress_payload(model_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Progress frame for one /api/pull status object."""
    status = data.get("status") or "downloading"
    progress = 0
    if status == "success":
        progress = 100
    elif data.get("completed") and data.get("total"):
        progress = round(data["completed"] / data["total"] * 100)
    return {
        "progress": progress,
        "status": status,
        "message": (
            f"{model_id} 다운로드 완료!" if status == "success"
            else f"{model_id} 다운로드 중... {progress}%"
        ),
        "success": status == "success",
    }


async def relay_pull_progress(
    model_id: str, updates: AsyncIterator[dict[str, Any]]
) -> AsyncIterator[str]:
    """SSE frames for a model download; ends with a success frame unless the server reports an error."""
    async for data in updates:
        if data.get("error"):
            raise InferenceServerError(f"Pull of {model_id} failed: {data['error']}")
        payload = pull_progress_payload(model_id, data)
        yield format_sse(payload)
        if payload["success"]:
            return
    yield format_sse(pull_progress_payload(model_id, {"status": "success"}))
