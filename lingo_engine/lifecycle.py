"""
Model Lifecycle Manager — which local model is resident in the inference server.

A single instance per process owns ``LifecycleState``. ``load``, ``unload``
and ``switch`` are serialised by one ``asyncio.Lock``; ``status`` reads the
server without taking the lock and never mutates state.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import structlog
from prometheus_client import Counter, Histogram

from lingo_engine.config import EngineConfig
from lingo_engine.exceptions import (
    InferenceServerError,
    InferenceUnavailableError,
    UnknownModelError,
)
from lingo_engine.model_registry import ModelDescriptor, ModelRegistry, SizeClass
from lingo_engine.ollama_client import OllamaClient

logger = logging.getLogger("lingo.engine.lifecycle")

LIFECYCLE_OPS = Counter(
    "lingo_model_lifecycle_total",
    "Model lifecycle operations",
    ["action", "status"],
)
LIFECYCLE_LATENCY = Histogram(
    "lingo_model_lifecycle_seconds",
    "Model lifecycle operation latency",
    ["action"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 180.0],
)

KIND_UNREACHABLE = "unreachable"
KIND_SERVER_ERROR = "server_error"
KIND_UNKNOWN_MODEL = "unknown_model"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class LifecycleState:
    active_model_id: str | None = None
    loaded_at: datetime | None = None


@dataclass
class LifecycleResult:
    """Outcome of a lifecycle operation."""
    success: bool
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    details: str | None = None
    kind: str | None = None

    @classmethod
    def ok(cls, message: str, data: dict[str, Any] | None = None) -> "LifecycleResult":
        return cls(success=True, message=message, data=data or {})

    @classmethod
    def fail(cls, error: str, details: str | None = None, kind: str | None = None) -> "LifecycleResult":
        return cls(success=False, error=error, details=details, kind=kind)

    def __bool__(self) -> bool:
        return self.success

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "message": self.message, "data": self.data}
        body: dict[str, Any] = {"success": False, "error": self.error, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


def _failure_kind(exc: Exception) -> str:
    if isinstance(exc, UnknownModelError):
        return KIND_UNKNOWN_MODEL
    if isinstance(exc, InferenceServerError):
        return KIND_SERVER_ERROR
    return KIND_UNREACHABLE


class ModelLifecycleManager:
    """
    Loads, unloads and switches local models.

    Args:
        config: Engine configuration (timeouts, grace period).
        client: Inference server client.
        registry: Catalog + derived descriptors.
        sleep: Awaitable sleep used for the post-unload grace period.
    """

    def __init__(
        self,
        config: EngineConfig,
        client: OllamaClient,
        registry: ModelRegistry,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.client = client
        self.registry = registry
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._state = LifecycleState()

    @property
    def state(self) -> LifecycleState:
        return LifecycleState(self._state.active_model_id, self._state.loaded_at)

    def _record(self, action: str, model_id: str, success: bool, started: float, **extra: Any) -> None:
        latency = time.monotonic() - started
        LIFECYCLE_OPS.labels(action=action, status="success" if success else "error").inc()
        LIFECYCLE_LATENCY.labels(action=action).observe(latency)
        structlog.get_logger().info(
            "model_lifecycle",
            action=action,
            model=model_id,
            success=success,
            latency_ms=round(latency * 1000, 2),
            **extra,
        )

    async def _resolve(self, model_id: str) -> ModelDescriptor:
        descriptor = self.registry.get(model_id)
        if descriptor is not None:
            return descriptor
        for entry in await self.client.list_models():
            if entry.get("name") == model_id or entry.get("model") == model_id:
                return self.registry.register_discovered(model_id, entry.get("size"))
        raise UnknownModelError(f"Unknown model: {model_id}")

    def _load_timeout(self, descriptor: ModelDescriptor) -> float:
        if descriptor.size_class == SizeClass.LARGE:
            return self.config.large_load_timeout_seconds
        return self.config.load_timeout_seconds

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load(self, model_id: str) -> LifecycleResult:
        async with self._lock:
            return await self._load_locked(model_id)

    async def _load_locked(self, model_id: str) -> LifecycleResult:
        started = time.monotonic()
        try:
            descriptor = await self._resolve(model_id)
            logger.info(
                "Loading model %s (%s, keep_alive=%s)",
                model_id, descriptor.size_class.value, descriptor.keep_alive,
            )
            await self.client.generate(
                model_id,
                prompt="Hi",
                keep_alive=descriptor.keep_alive,
                timeout=self._load_timeout(descriptor),
            )
        except (InferenceUnavailableError, InferenceServerError, UnknownModelError) as exc:
            kind = _failure_kind(exc)
            logger.error("Failed to load model %s [%s]: %s", model_id, kind, exc)
            self._record("load", model_id, False, started, kind=kind)
            return LifecycleResult.fail(f"모델 로드 실패: {model_id}", details=str(exc), kind=kind)

        loaded_at = datetime.now(timezone.utc)
        self._state = LifecycleState(active_model_id=model_id, loaded_at=loaded_at)
        self._record("load", model_id, True, started)
        return LifecycleResult.ok(
            f"{model_id} 모델이 로드되었습니다.",
            {
                "model": model_id,
                "size": descriptor.size_label,
                "keepAlive": descriptor.keep_alive,
                "priority": descriptor.size_class.value,
                "loadedAt": loaded_at.isoformat(),
            },
        )

    async def unload(self, model_id: str) -> LifecycleResult:
        async with self._lock:
            return await self._unload_locked(model_id, self.config.unload_timeout_seconds)

    async def _unload_locked(self, model_id: str, timeout: float) -> LifecycleResult:
        started = time.monotonic()
        warning = None
        try:
            await self.client.generate(model_id, prompt="", keep_alive=0, timeout=timeout)
        except (InferenceUnavailableError, InferenceServerError) as exc:
            warning = str(exc)
            logger.warning("Unload of %s reported an error (ignored): %s", model_id, exc)

        if self._state.active_model_id == model_id:
            self._state = LifecycleState()
        self._record("unload", model_id, True, started, warning=warning)

        data: dict[str, Any] = {"model": model_id, "unloadedAt": _now_iso()}
        if warning:
            data["warning"] = warning
        return LifecycleResult.ok(f"{model_id} 모델이 언로드되었습니다.", data)

    async def switch(self, new_model_id: str) -> LifecycleResult:
        async with self._lock:
            started = time.monotonic()
            previous = self._state.active_model_id

            try:
                resident = [m.get("name") or m.get("model") for m in await self.client.list_running()]
            except (InferenceUnavailableError, InferenceServerError) as exc:
                logger.warning("Could not list resident models, using tracked state: %s", exc)
                resident = [previous] if previous else []

            unloaded: list[str] = []
            for model_id in resident:
                if not model_id or model_id == new_model_id:
                    continue
                await self._unload_locked(model_id, self.config.switch_unload_timeout_seconds)
                unloaded.append(model_id)

            if unloaded and self.config.switch_grace_seconds > 0:
                await self._sleep(self.config.switch_grace_seconds)

            loaded = await self._load_locked(new_model_id)
            self._record("switch", new_model_id, loaded.success, started, unloaded=unloaded)

            results = {
                "unloaded": unloaded,
                "loaded": loaded.data if loaded.success else loaded.to_dict(),
            }
            if not loaded.success:
                failed = LifecycleResult.fail(
                    f"모델 전환 실패: {new_model_id}", details=loaded.details, kind=loaded.kind,
                )
                failed.data = {"results": results}
                return failed
            return LifecycleResult.ok(
                f"{new_model_id} 모델로 전환되었습니다.",
                {
                    "switch": {"from": previous, "to": new_model_id, "completedAt": _now_iso()},
                    "results": results,
                },
            )

    async def status(self) -> LifecycleResult:
        """Resident and installed models; registers unseen models in the derived cache."""
        try:
            running = await self.client.list_running()
            installed = await self.client.list_models()
        except (InferenceUnavailableError, InferenceServerError) as exc:
            kind = _failure_kind(exc)
            logger.error("Failed to query model status [%s]: %s", kind, exc)
            return LifecycleResult.fail("모델 상태 확인 실패", details=str(exc), kind=kind)

        for entry in installed:
            name = entry.get("name") or entry.get("model")
            if name:
                self.registry.register_discovered(name, entry.get("size"))

        state = self._state
        return LifecycleResult.ok(
            "모델 상태 조회 완료",
            {
                "activeModel": state.active_model_id,
                "loadedAt": state.loaded_at.isoformat() if state.loaded_at else None,
                "loadedModels": [
                    {
                        "name": m.get("name") or m.get("model"),
                        "size": m.get("size"),
                        "sizeVram": m.get("size_vram"),
                        "expiresAt": m.get("expires_at"),
                    }
                    for m in running
                ],
                "availableModels": [m.get("name") or m.get("model") for m in installed],
                "categories": self.registry.categories(),
            },
        )
