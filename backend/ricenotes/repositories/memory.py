"""
Rice Notes Backend — In-Memory Note Repository
================================================

What:  Dict-backed NoteRepository for tests and for running without
       DATABASE_URL.
How:   Stores Note instances keyed by id. A monotonically increasing sequence
       breaks created_at ties so "newest first" is stable even when two
       inserts land on the same clock tick.
"""

import logging
import uuid
from itertools import count
from typing import Callable, Dict, List, Optional

from ricenotes.models.note import Note, utcnow
from ricenotes.repositories.base import NoteRepository

logger = logging.getLogger(__name__)


class InMemoryNoteRepository(NoteRepository):
    def __init__(self, clock: Callable = utcnow) -> None:
        self.notes: Dict[uuid.UUID, Note] = {}
        self._order: Dict[uuid.UUID, int] = {}
        self._sequence = count()
        self._clock = clock

    async def insert(self, note: Note) -> Note:
        if note.id is None:
            note.id = uuid.uuid4()
        now = self._clock()
        note.created_at = now
        note.updated_at = now
        self.notes[note.id] = note
        self._order[note.id] = next(self._sequence)
        logger.debug("Note %s stored in memory", note.id)
        return note

    async def get(self, note_id: uuid.UUID) -> Optional[Note]:
        return self.notes.get(note_id)

    async def list_for_owner(
        self,
        owner_email: str,
        course_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Note]:
        matches = [
            note for note in self.notes.values()
            if note.owner_email == owner_email
            and (not course_id or note.course_id == course_id)
        ]
        matches.sort(key=lambda n: (n.created_at, self._order[n.id]), reverse=True)
        return matches[offset:offset + limit]

    async def delete(self, note_id: uuid.UUID, owner_email: str) -> bool:
        note = self.notes.get(note_id)
        if note is None or note.owner_email != owner_email:
            return False
        del self.notes[note_id]
        del self._order[note_id]
        return True

    async def ping(self) -> bool:
        return True
