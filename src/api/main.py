"""
Lingo API — FastAPI Application Factory
Language-learning chat backend with:
  • Cloud (litellm) or local (Ollama) tutor chat, SSE streaming for local models
  • Local model lifecycle management
  • SQLAlchemy 2.0 async ORM + psycopg 3 driver
  • Prometheus instrumentation
"""
import logging
import sys
import time as _time
import traceback
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

# Import-path compatibility for absolute imports across src/api.
_API_DIR = str(Path(__file__).resolve().parent)
if _API_DIR not in sys.path:
    sys.path.insert(0, _API_DIR)

from config import API_HOST, API_PORT, API_VERSION, CORS_ORIGINS, ENSURE_SCHEMA_ON_STARTUP, LOG_LEVEL
from db import AsyncSessionLocal, async_engine, ensure_schema
from db.chat_store import SqlChatStore
from lingo_engine.chat_orchestrator import ChatOrchestrator
from lingo_engine.config import EngineConfig
from lingo_engine.lifecycle import ModelLifecycleManager
from lingo_engine.llm_gateway import LLMGateway
from lingo_engine.logging_config import configure_logging, correlation_id_var, new_correlation_id
from lingo_engine.model_registry import ModelRegistry
from lingo_engine.ollama_client import OllamaClient
from lingo_engine.settings_store import SettingsStore
from routers.chat import configure_chat, router as chat_router
from routers.health import router as health_router
from routers.language import router as language_router
from routers.notes import router as notes_router
from routers.ollama import configure_ollama, router as ollama_router
from routers.session_auth import router as session_auth_router
from routers.settings import configure_settings, router as settings_router

configure_logging(getattr(logging, LOG_LEVEL, logging.INFO))
_logger = logging.getLogger("lingo.api")
_perf_logger = logging.getLogger("lingo.perf")


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    _logger.info("Lingo API v%s starting up", API_VERSION)

    if ENSURE_SCHEMA_ON_STARTUP:
        try:
            await ensure_schema()
            _logger.info("Database schema ensured (SQLAlchemy 2 + psycopg3)")
        except Exception as e:
            _logger.warning("Database init failed: %s", e)

    engine_cfg = EngineConfig.from_env()
    client = OllamaClient(engine_cfg)
    registry = ModelRegistry()
    lifecycle = ModelLifecycleManager(engine_cfg, client, registry)
    settings_store = SettingsStore(engine_cfg.settings_file)
    store = SqlChatStore(AsyncSessionLocal)
    orchestrator = ChatOrchestrator(engine_cfg, store, settings_store, client, LLMGateway(engine_cfg))

    configure_ollama(lifecycle, client)
    configure_settings(settings_store)
    configure_chat(orchestrator, store)
    app.state.lifecycle = lifecycle
    _logger.info("Lingo engine initialized (inference server %s)", engine_cfg.ollama_url)

    yield

    await client.close()
    await async_engine.dispose()
    _logger.info("Inference client closed, database engine disposed")


# ── Application ──────────────────────────────────────────────────────────────

app = FastAPI(
    title="Lingo API",
    description=(
        "## Lingo language-learning API\n\n"
        "### Stack\n"
        "- **ORM**: SQLAlchemy 2.0 async\n"
        "- **Driver**: psycopg 3\n"
        "- **LLM**: litellm (cloud) / Ollama (local)\n\n"
        "### Domains\n"
        "Chat · History · Local Models · Settings · Notes · Language"
    ),
    version=API_VERSION,
    lifespan=lifespan,
    root_path="/api",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# ── Middleware ────────────────────────────────────────────────────────────────

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    expose_headers=["X-Chat-Room-Id", "X-Chat-Warning", "X-Correlation-ID"],
)

Instrumentator().instrument(app).expose(app, endpoint="/metrics")


# ── Global Exception Handler ─────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions — return JSON instead of disconnect."""
    exc_type = type(exc).__name__

    if "OperationalError" in exc_type or "ProgrammingError" in exc_type:
        _logger.error("Database error on %s %s: %s",
                      request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"error": "Database not available", "path": request.url.path},
        )

    _logger.error("Unhandled exception on %s %s: %s\n%s",
                  request.method, request.url.path, exc,
                  traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "type": exc_type, "path": request.url.path},
    )


@app.middleware("http")
async def request_timing_middleware(request, call_next):
    start = _time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (_time.perf_counter() - start) * 1000
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.1f}"
    if elapsed_ms > 1000 and not response.headers.get("content-type", "").startswith("text/event-stream"):
        _perf_logger.warning(
            "Slow request: %s %s took %.1fms (status=%s)",
            request.method, request.url.path, elapsed_ms, response.status_code,
        )
    return response


@app.middleware("http")
async def correlation_middleware(request, call_next):
    cid = request.headers.get("X-Correlation-ID") or new_correlation_id()
    correlation_id_var.set(cid)
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = cid
    return response


# ── REST routers ─────────────────────────────────────────────────────────────

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(ollama_router)
app.include_router(settings_router)
app.include_router(notes_router)
app.include_router(language_router)
app.include_router(session_auth_router)


# ── Entry point ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)
