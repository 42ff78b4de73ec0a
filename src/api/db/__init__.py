"""
Lingo database layer — SQLAlchemy 2.0 ORM with psycopg3 async driver.
"""

from .models import Base
from .session import async_engine, AsyncSessionLocal, ensure_schema

__all__ = ["Base", "async_engine", "AsyncSessionLocal", "ensure_schema"]
