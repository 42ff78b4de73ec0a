"""
Lingo API — Configuration
Process-level settings for the HTTP service. Engine settings live in
``lingo_engine.config.EngineConfig``.
"""

import logging
import os
from datetime import datetime, timezone

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    db_user = os.getenv("DB_USER", "lingo")
    db_password = os.getenv("DB_PASSWORD", "lingo")
    db_host = os.getenv("DB_HOST", "localhost")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_NAME", "lingo")
    DATABASE_URL = (
        f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
    )
    logging.getLogger("lingo.api").warning(
        "DATABASE_URL not set — using fallback DSN from DB_* env/defaults"
    )

DB_SCHEMA = os.getenv("DB_SCHEMA", "lingo")
ENSURE_SCHEMA_ON_STARTUP = os.getenv(
    "ENSURE_SCHEMA_ON_STARTUP", "true"
).lower() in {"1", "true", "yes"}

# ── HTTP ──────────────────────────────────────────────────────────────────────
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if o.strip()
]
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ── Sessions ─────────────────────────────────────────────────────────────────
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session-token")
SESSION_EXTEND_HOURS = int(os.getenv("SESSION_EXTEND_HOURS", "1"))

# ── Runtime ──────────────────────────────────────────────────────────────────
STARTUP_TIME = datetime.now(timezone.utc)
API_VERSION = "1.0.0"
