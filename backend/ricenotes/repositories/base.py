"""
Abstract repository for note metadata.
"""

import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from ricenotes.models.note import Note


class NoteRepository(ABC):
    """
    Persistence contract for Note rows.

    Implementations raise MetadataWriteError / MetadataReadError for storage
    failures; "no such row" is never an exception here.
    """

    @abstractmethod
    async def insert(self, note: Note) -> Note:
        """Persist a new note, setting created_at and updated_at."""
        pass

    @abstractmethod
    async def get(self, note_id: uuid.UUID) -> Optional[Note]:
        """Fetch a note by ID regardless of owner."""
        pass

    @abstractmethod
    async def list_for_owner(
        self,
        owner_email: str,
        course_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Note]:
        """Owner's notes, newest first, optionally filtered by exact course_id."""
        pass

    @abstractmethod
    async def delete(self, note_id: uuid.UUID, owner_email: str) -> bool:
        """Delete the row matching both id and owner; False if none matched."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """True when the store answers a trivial query."""
        pass
