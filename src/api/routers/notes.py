"""
Notes endpoints — per-user study notes.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import CurrentUser, get_current_user
from db.models import Note
from deps import get_db
from schemas.requests import NoteBody

router = APIRouter(tags=["Notes"])
logger = logging.getLogger("lingo.api.notes")


def _note_dict(note: Note) -> dict:
    return {
        "id": str(note.id),
        "title": note.title,
        "content": note.content,
        "createdAt": note.created_at.isoformat() if note.created_at else None,
        "updatedAt": note.updated_at.isoformat() if note.updated_at else None,
    }


def _parse_id(note_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(note_id)
    except ValueError:
        raise HTTPException(status_code=404, detail="Note not found")


def _require_fields(body: NoteBody) -> None:
    if not body.title or not body.content:
        raise HTTPException(status_code=400, detail="Title and content are required")


async def _owned_note(db: AsyncSession, note_id: str, user: CurrentUser) -> Note:
    result = await db.execute(
        select(Note).where(Note.id == _parse_id(note_id), Note.user_id == uuid.UUID(user.id))
    )
    note = result.scalar_one_or_none()
    if note is None:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.get("/notes")
async def list_notes(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Caller's notes, most recently updated first."""
    result = await db.execute(
        select(Note).where(Note.user_id == uuid.UUID(user.id)).order_by(Note.updated_at.desc())
    )
    return {"notes": [_note_dict(n) for n in result.scalars().all()]}


@router.post("/notes")
async def create_note(
    body: NoteBody,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _require_fields(body)
    note = Note(title=body.title, content=body.content, user_id=uuid.UUID(user.id))
    db.add(note)
    await db.commit()
    await db.refresh(note)
    logger.info("Note %s created by %s", note.id, user.id)
    return {"note": _note_dict(note)}


@router.get("/notes/{note_id}")
async def get_note(
    note_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"note": _note_dict(await _owned_note(db, note_id, user))}


@router.put("/notes/{note_id}")
async def update_note(
    note_id: str,
    body: NoteBody,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _require_fields(body)
    note = await _owned_note(db, note_id, user)
    note.title = body.title
    note.content = body.content
    note.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(note)
    return {"note": _note_dict(note)}


@router.delete("/notes/{note_id}")
async def delete_note(
    note_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        delete(Note).where(Note.id == _parse_id(note_id), Note.user_id == uuid.UUID(user.id))
    )
    if not result.rowcount:
        raise HTTPException(status_code=404, detail="Note not found")
    await db.commit()
    return {"success": True}
