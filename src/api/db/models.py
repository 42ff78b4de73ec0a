"""
SQLAlchemy 2.0 ORM models for Lingo.

Driver: psycopg 3 via SQLAlchemy async.
All tables live in the ``lingo`` schema. ``users`` and ``user_sessions`` are
populated by the external auth provider; this service only reads them and
extends session expiry.
"""

import uuid as uuid_mod
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

SCHEMA = "lingo"


# ── Base ─────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Shared base for all Lingo ORM models."""

    def to_dict(self) -> dict:
        """Serialize model instance to a JSON-friendly dict keyed by column name."""
        result: dict[str, Any] = {}
        mapper = sa_inspect(type(self))
        for attr in mapper.column_attrs:
            col_name = attr.columns[0].name
            val = getattr(self, attr.key)
            if isinstance(val, datetime):
                result[col_name] = val.isoformat()
            elif isinstance(val, uuid_mod.UUID):
                result[col_name] = str(val)
            else:
                result[col_name] = val
        return result


# ── Identity (owned by the auth provider) ────────────────────────────────────

class User(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[Any] = mapped_column(UUID(as_uuid=True), primary_key=True, server_default=text("uuid_generate_v4()"))
    email: Mapped[str | None] = mapped_column(String(320), unique=True)
    name: Mapped[str | None] = mapped_column(String(200))
    openai_api_key: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("NOW()"))


class UserSession(Base):
    __tablename__ = "user_sessions"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[Any] = mapped_column(UUID(as_uuid=True), primary_key=True, server_default=text("uuid_generate_v4()"))
    session_token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    user_id: Mapped[Any] = mapped_column(
        UUID(as_uuid=True), ForeignKey(f"{SCHEMA}.users.id", ondelete="CASCADE"), nullable=False,
    )
    expires: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


Index("idx_user_sessions_user", UserSession.user_id)


# ── Chat ─────────────────────────────────────────────────────────────────────

class ChatRoom(Base):
    __tablename__ = "chat_rooms"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[Any] = mapped_column(UUID(as_uuid=True), primary_key=True, server_default=text("uuid_generate_v4()"))
    user_id: Mapped[Any] = mapped_column(
        UUID(as_uuid=True), ForeignKey(f"{SCHEMA}.users.id", ondelete="CASCADE"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    main_language: Mapped[str | None] = mapped_column(String(50))
    learning_language: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("NOW()"))

    messages: Mapped[list["Message"]] = relationship(
        back_populates="chat_room", order_by="Message.created_at", cascade="all, delete-orphan",
    )


Index("idx_chat_rooms_user_updated", ChatRoom.user_id, ChatRoom.updated_at.desc())


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[Any] = mapped_column(UUID(as_uuid=True), primary_key=True, server_default=text("uuid_generate_v4()"))
    chat_room_id: Mapped[Any] = mapped_column(
        UUID(as_uuid=True), ForeignKey(f"{SCHEMA}.chat_rooms.id", ondelete="CASCADE"), nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("clock_timestamp()"))

    chat_room: Mapped[ChatRoom] = relationship(back_populates="messages")


Index("idx_messages_room_created", Message.chat_room_id, Message.created_at)


# ── Notes ────────────────────────────────────────────────────────────────────

class Note(Base):
    __tablename__ = "notes"
    __table_args__ = {"schema": SCHEMA}

    id: Mapped[Any] = mapped_column(UUID(as_uuid=True), primary_key=True, server_default=text("uuid_generate_v4()"))
    user_id: Mapped[Any] = mapped_column(
        UUID(as_uuid=True), ForeignKey(f"{SCHEMA}.users.id", ondelete="CASCADE"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("NOW()"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("NOW()"))


Index("idx_notes_user_updated", Note.user_id, Note.updated_at.desc())
