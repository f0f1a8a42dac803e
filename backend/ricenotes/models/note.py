"""
Rice Notes Backend — Note SQLAlchemy Model
============================================

What:  ORM model for the `notes` table: one uploaded PDF plus its metadata.
How:   Inherits from the DeclarativeBase in database.py. The same class is used
       by the SQL repository (persisted rows) and the in-memory repository
       (transient instances), so services only ever see `Note`.
Who:   Created by NoteService, persisted by a NoteRepository.

Table Design:
    - id: UUID generated by NoteService *before* upload, because it is part
      of the storage key
    - owner_email: always taken from the session claims
    - storage_key: notes/{owner_email}/{id}/{file_name}
    - content_type: pinned to application/pdf
    - created_at / updated_at: UTC, timezone-aware

Indexes:
    idx_notes_owner_created  (owner_email, created_at) — the list query
    idx_notes_course_id      (course_id)                — course filter
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ricenotes.database import Base

PDF_CONTENT_TYPE = "application/pdf"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Note(Base):
    """
    A PDF note owned by one user.

    Lifecycle:
        1. Built by NoteService after validation and a successful upload
        2. Inserted by the repository (timestamps set here)
        3. Never updated through the API
        4. Deleted by NoteService.delete_note (row first, then the object)
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    owner_email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Email of the authenticated uploader",
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    course_id: Mapped[str] = mapped_column(String(50), nullable=False)

    file_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Original name of the uploaded file",
    )

    storage_key: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Object store key: notes/{owner}/{id}/{file_name}",
    )

    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    content_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PDF_CONTENT_TYPE,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        Index("idx_notes_owner_created", "owner_email", "created_at"),
        Index("idx_notes_course_id", "course_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, owner='{self.owner_email}', "
            f"course_id='{self.course_id}', file_name='{self.file_name}')>"
        )
