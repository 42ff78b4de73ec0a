"""
Async wrapper over the local inference server HTTP API.

Transport failures (connect refused, reset, timeout) surface as
``InferenceUnavailableError``; non-2xx answers as ``InferenceServerError``.
No retries are attempted here.
"""
import json
import logging
from typing import Any, AsyncIterator

import httpx

from lingo_engine.config import EngineConfig
from lingo_engine.exceptions import InferenceServerError, InferenceUnavailableError

logger = logging.getLogger("lingo.engine.ollama")


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


class OllamaClient:
    """
    Thin client for /api/generate, /api/chat, /api/tags, /api/ps,
    /api/pull and /api/delete.

    Args:
        config: Engine configuration (URL and per-call timeouts).
        http_client: Optional pre-built ``httpx.AsyncClient`` (tests pass one
            backed by ``httpx.MockTransport``).
    """

    def __init__(self, config: EngineConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = http_client or httpx.AsyncClient(base_url=config.ollama_url)

    @property
    def base_url(self) -> str:
        return self.config.ollama_url

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: float,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, json=json_body, timeout=timeout)
        except httpx.TransportError as exc:
            raise InferenceUnavailableError(_describe(exc)) from exc
        if resp.status_code >= 400:
            raise InferenceServerError(
                f"{method} {path} failed: HTTP {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    # ------------------------------------------------------------------
    # Model residency
    # ------------------------------------------------------------------

    async def generate(
        self,
        model: str,
        prompt: str,
        keep_alive: str | int,
        timeout: float,
    ) -> dict[str, Any]:
        """Non-streaming /api/generate. Used to load (prompt "Hi") or unload (keep_alive 0)."""
        resp = await self._request(
            "POST",
            "/api/generate",
            timeout=timeout,
            json_body={
                "model": model,
                "prompt": prompt,
                "stream": False,
                "keep_alive": keep_alive,
            },
        )
        return resp.json()

    async def list_models(self, timeout: float | None = None) -> list[dict[str, Any]]:
        """Installed models from /api/tags."""
        resp = await self._request(
            "GET", "/api/tags", timeout=timeout or self.config.list_timeout_seconds,
        )
        return list(resp.json().get("models", []) or [])

    async def list_running(self, timeout: float | None = None) -> list[dict[str, Any]]:
        """Models currently resident in memory, from /api/ps."""
        resp = await self._request(
            "GET", "/api/ps", timeout=timeout or self.config.list_timeout_seconds,
        )
        return list(resp.json().get("models", []) or [])

    async def is_running(self) -> bool:
        try:
            await self.list_models(timeout=self.config.health_timeout_seconds)
            return True
        except (InferenceUnavailableError, InferenceServerError) as exc:
            logger.debug("Inference server health check failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, model: str, messages: list[dict[str, str]]) -> str:
        """Blocking /api/chat; returns the assistant content."""
        resp = await self._request(
            "POST",
            "/api/chat",
            timeout=self.config.chat_timeout_seconds,
            json_body={"model": model, "messages": messages, "stream": False},
        )
        data = resp.json()
        return (data.get("message") or {}).get("content", "")

    async def stream_chat_lines(
        self, model: str, messages: list[dict[str, str]]
    ) -> AsyncIterator[str]:
        """
        Streaming /api/chat, yielding raw NDJSON lines.

        Leaving the iteration early (client disconnect, cancellation) closes
        the upstream response through the ``async with`` block.
        """
        payload = {"model": model, "messages": messages, "stream": True}
        try:
            async with self._client.stream(
                "POST", "/api/chat", json=payload, timeout=self.config.chat_timeout_seconds,
            ) as resp:
                if resp.status_code >= 400:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    raise InferenceServerError(
                        f"POST /api/chat failed: HTTP {resp.status_code} {body[:200]}",
                        status_code=resp.status_code,
                    )
                async for line in resp.aiter_lines():
                    if line.strip():
                        yield line
        except httpx.TransportError as exc:
            raise InferenceUnavailableError(_describe(exc)) from exc

    # ------------------------------------------------------------------
    # Catalogue management
    # ------------------------------------------------------------------

    async def pull(self, model: str) -> dict[str, Any]:
        """Blocking /api/pull."""
        resp = await self._request(
            "POST",
            "/api/pull",
            timeout=self.config.pull_timeout_seconds,
            json_body={"name": model, "stream": False},
        )
        return resp.json()

    async def pull_stream(self, model: str) -> AsyncIterator[dict[str, Any]]:
        """Streaming /api/pull; yields decoded progress objects."""
        payload = {"name": model, "stream": True}
        try:
            async with self._client.stream(
                "POST", "/api/pull", json=payload, timeout=self.config.pull_timeout_seconds,
            ) as resp:
                if resp.status_code >= 400:
                    raise InferenceServerError(
                        f"POST /api/pull failed: HTTP {resp.status_code}",
                        status_code=resp.status_code,
                    )
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        yield json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning("Skipping malformed pull progress line: %r", line[:200])
        except httpx.TransportError as exc:
            raise InferenceUnavailableError(_describe(exc)) from exc

    async def delete(self, model: str) -> None:
        await self._request(
            "DELETE",
            "/api/delete",
            timeout=self.config.list_timeout_seconds,
            json_body={"name": model},
        )
