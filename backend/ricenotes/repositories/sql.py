"""
Rice Notes Backend — SQL Note Repository
==========================================

What:  NoteRepository over async SQLAlchemy (asyncpg in production,
       aiosqlite in tests).
How:   Every method opens its own session from the shared async_sessionmaker
       and runs one short transaction. No transaction ever spans object store
       I/O.

Query plans:
    get            → primary key lookup
    list_for_owner → idx_notes_owner_created (+ idx_notes_course_id filter)
    delete         → DELETE ... WHERE id = :id AND owner_email = :owner
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ricenotes.exceptions import MetadataReadError, MetadataWriteError
from ricenotes.models.note import Note, utcnow
from ricenotes.repositories.base import NoteRepository

logger = logging.getLogger(__name__)


class SqlNoteRepository(NoteRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(self, note: Note) -> Note:
        now = utcnow()
        note.created_at = now
        note.updated_at = now
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(note)
        except SQLAlchemyError as e:
            logger.error("Failed to insert note %s: %s", note.id, str(e))
            raise MetadataWriteError(
                context={"note_id": str(note.id), "error_type": type(e).__name__}
            ) from e

        logger.info("Note record created: %s", note.id)
        return note

    async def get(self, note_id: uuid.UUID) -> Optional[Note]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Note).where(Note.id == note_id))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching note %s: %s", note_id, str(e))
            raise MetadataReadError(
                context={"note_id": str(note_id), "error_type": type(e).__name__}
            ) from e

    async def list_for_owner(
        self,
        owner_email: str,
        course_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Note]:
        query = select(Note).where(Note.owner_email == owner_email)
        if course_id:
            query = query.where(Note.course_id == course_id)
        # id breaks created_at ties so pages never overlap
        query = query.order_by(Note.created_at.desc(), Note.id.desc()).limit(limit).offset(offset)

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing notes: %s", str(e), exc_info=True)
            raise MetadataReadError(context={"error_type": type(e).__name__}) from e

    async def delete(self, note_id: uuid.UUID, owner_email: str) -> bool:
        statement = delete(Note).where(
            Note.id == note_id,
            Note.owner_email == owner_email,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Failed to delete note %s: %s", note_id, str(e))
            raise MetadataWriteError(
                context={"note_id": str(note_id), "error_type": type(e).__name__}
            ) from e

        return result.rowcount > 0

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("Database health check failed: %s", str(e))
            return False
