"""
Database engine & async session factory.

Driver: psycopg 3 (postgresql+psycopg)
ORM:    SQLAlchemy 2.0 async
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.schema import CreateIndex, CreateTable

from config import DATABASE_URL, DB_SCHEMA
from .models import Base

logger = logging.getLogger("lingo.db")


# ── URL helpers ──────────────────────────────────────────────────────────────

def _as_psycopg_url(url: str) -> str:
    """Convert any PostgreSQL URL to the psycopg async dialect."""
    for prefix in (
        "postgresql+psycopg://",
        "postgresql+asyncpg://",
        "postgresql://",
        "postgres://",
    ):
        if url.startswith(prefix):
            return url.replace(prefix, "postgresql+psycopg://", 1)
    return url


# ── Engine + session factory ─────────────────────────────────────────────────

async_engine = create_async_engine(
    _as_psycopg_url(DATABASE_URL),
    pool_size=10,
    max_overflow=20,
    pool_timeout=30,
    pool_recycle=3600,
    pool_pre_ping=True,
    echo=False,
)

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Schema bootstrapping ────────────────────────────────────────────────────

async def _run_isolated(conn, label: str, sql):
    """Execute a DDL statement inside a SAVEPOINT so failures don't poison
    the outer transaction.  Returns True on success, False on error."""
    sp_name = f"sp_{label.replace('.', '_').replace('-', '_')[:50]}"
    try:
        await conn.execute(text(f"SAVEPOINT {sp_name}"))
        if isinstance(sql, str):
            await conn.execute(text(sql))
        else:
            await conn.execute(sql)
        await conn.execute(text(f"RELEASE SAVEPOINT {sp_name}"))
        return True
    except Exception as e:
        await conn.execute(text(f"ROLLBACK TO SAVEPOINT {sp_name}"))
        logger.warning("[%s] %s", label, e)
        return False


async def ensure_schema() -> None:
    """Create the schema, the uuid extension, tables and indexes if missing."""
    async with async_engine.begin() as conn:
        await _run_isolated(conn, f"schema_{DB_SCHEMA}",
                            f"CREATE SCHEMA IF NOT EXISTS {DB_SCHEMA}")
        if await _run_isolated(conn, "ext_uuid_ossp",
                               'CREATE EXTENSION IF NOT EXISTS "uuid-ossp"'):
            logger.info("Extension 'uuid-ossp' ensured")

        created = []
        failed = []
        for table in Base.metadata.sorted_tables:
            ok = await _run_isolated(
                conn, f"table_{table.name}",
                CreateTable(table, if_not_exists=True),
            )
            (created if ok else failed).append(table.name)

        for table in Base.metadata.sorted_tables:
            for index in table.indexes:
                await _run_isolated(
                    conn, f"idx_{index.name}",
                    CreateIndex(index, if_not_exists=True),
                )

        if failed:
            logger.warning("Schema bootstrap: %d tables created, %d failed: %s",
                           len(created), len(failed), failed)
        else:
            logger.info("Schema bootstrap: all %d tables ensured", len(created))


async def check_database_health() -> dict:
    """Return database health info: reachable, existing and missing tables."""
    expected_tables = {t.name for t in Base.metadata.sorted_tables}
    async with async_engine.connect() as conn:
        result = await conn.execute(
            text("SELECT tablename FROM pg_catalog.pg_tables WHERE schemaname = :schema"),
            {"schema": DB_SCHEMA},
        )
        existing_tables = {row[0] for row in result.all()}

    missing = expected_tables - existing_tables
    return {
        "status": "ok" if not missing else "degraded",
        "missing": sorted(missing),
        "existing_count": len(existing_tables & expected_tables),
        "expected_count": len(expected_tables),
    }
