"""
SQL-backed chat persistence used by the chat orchestrator and history routes.

Each operation runs in its own session and commits immediately; nothing is
held open across calls to the model backends. Malformed room or user ids are
treated as "not found".
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from lingo_engine.chat_orchestrator import ChatRoomRef

from .models import ChatRoom, Message, User

logger = logging.getLogger("lingo.db.chat")


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _room_ref(room: ChatRoom) -> ChatRoomRef:
    return ChatRoomRef(
        id=str(room.id),
        title=room.title,
        main_language=room.main_language,
        learning_language=room.learning_language,
    )


def room_to_dict(room: ChatRoom) -> dict[str, Any]:
    return {
        "id": str(room.id),
        "title": room.title,
        "mainLanguage": room.main_language,
        "learningLanguage": room.learning_language,
        "createdAt": _iso(room.created_at),
        "updatedAt": _iso(room.updated_at),
    }


class SqlChatStore:
    """``ChatStore`` over the ``lingo`` schema."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_room(self, room_id: str, user_id: str) -> ChatRoomRef | None:
        rid, uid = _as_uuid(room_id), _as_uuid(user_id)
        if rid is None or uid is None:
            return None
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatRoom).where(ChatRoom.id == rid, ChatRoom.user_id == uid)
            )
            room = result.scalar_one_or_none()
            return _room_ref(room) if room else None

    async def create_room(
        self,
        user_id: str,
        title: str,
        main_language: str | None,
        learning_language: str | None,
    ) -> ChatRoomRef:
        async with self._session_factory() as db:
            room = ChatRoom(
                user_id=uuid.UUID(str(user_id)),
                title=title,
                main_language=main_language,
                learning_language=learning_language,
            )
            db.add(room)
            await db.commit()
            await db.refresh(room)
            return _room_ref(room)

    async def update_room_languages(
        self, room_id: str, main_language: str, learning_language: str
    ) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(ChatRoom)
                .where(ChatRoom.id == uuid.UUID(str(room_id)))
                .values(
                    main_language=main_language,
                    learning_language=learning_language,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            await db.commit()

    async def add_message(self, room_id: str, role: str, content: str) -> str:
        rid = uuid.UUID(str(room_id))
        async with self._session_factory() as db:
            message = Message(chat_room_id=rid, role=role, content=content)
            db.add(message)
            await db.execute(
                update(ChatRoom)
                .where(ChatRoom.id == rid)
                .values(updated_at=datetime.now(timezone.utc))
            )
            await db.commit()
            await db.refresh(message)
            return str(message.id)

    async def get_user_api_key(self, user_id: str) -> str | None:
        uid = _as_uuid(user_id)
        if uid is None:
            return None
        async with self._session_factory() as db:
            result = await db.execute(select(User.openai_api_key).where(User.id == uid))
            return result.scalar_one_or_none()

    async def list_rooms(self, user_id: str) -> list[dict[str, Any]]:
        """Caller's rooms, most recently updated first, with the latest message."""
        uid = _as_uuid(user_id)
        if uid is None:
            return []
        async with self._session_factory() as db:
            rooms = (
                await db.execute(
                    select(ChatRoom)
                    .where(ChatRoom.user_id == uid)
                    .order_by(ChatRoom.updated_at.desc())
                )
            ).scalars().all()
            out = []
            for room in rooms:
                last = (
                    await db.execute(
                        select(Message.content)
                        .where(Message.chat_room_id == room.id)
                        .order_by(Message.created_at.desc())
                        .limit(1)
                    )
                ).scalar_one_or_none()
                out.append({
                    "id": str(room.id),
                    "title": room.title,
                    "updatedAt": _iso(room.updated_at),
                    "lastMessage": last,
                })
            return out

    async def get_room_with_messages(self, room_id: str, user_id: str) -> dict[str, Any] | None:
        rid, uid = _as_uuid(room_id), _as_uuid(user_id)
        if rid is None or uid is None:
            return None
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatRoom)
                .options(selectinload(ChatRoom.messages))
                .where(ChatRoom.id == rid, ChatRoom.user_id == uid)
            )
            room = result.scalar_one_or_none()
            if room is None:
                return None
            return {
                "chatRoom": room_to_dict(room),
                "languageSettings": {
                    "mainLanguage": room.main_language,
                    "learningLanguage": room.learning_language,
                },
                "messages": [
                    {
                        "id": str(m.id),
                        "content": m.content,
                        "role": m.role,
                        "timestamp": _iso(m.created_at),
                    }
                    for m in room.messages
                ],
            }
