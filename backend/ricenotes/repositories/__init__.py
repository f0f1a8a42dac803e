"""
Rice Notes Backend — Metadata Repositories
============================================

NoteRepository (base.py) is the only way services touch note rows:
    - SqlNoteRepository (sql.py): async SQLAlchemy, PostgreSQL in production
    - InMemoryNoteRepository (memory.py): dict-backed, tests and local dev
"""

from ricenotes.repositories.base import NoteRepository
from ricenotes.repositories.memory import InMemoryNoteRepository
from ricenotes.repositories.sql import SqlNoteRepository

__all__ = ["NoteRepository", "InMemoryNoteRepository", "SqlNoteRepository"]
