"""
Rice Notes Backend — Note Service (Business Logic Orchestrator)
=================================================================

What:  Coordinates validate → upload → persist for new notes, and the
       owner-scoped read, list, download and delete operations.
How:   Composes an ObjectStore (file bytes) and a NoteRepository (metadata).
       Neither store participates in the other's transaction, so the order
       of operations and the compensation steps below keep them consistent.
Who:   Built once per app in main.py; called by routes/notes.py.

Create flow (POST /api/notes):
    ┌──────────┐    ┌──────────┐    ┌──────────────┐
    │ Validate │───▶│  Upload  │───▶│ Insert row   │
    │ (no I/O) │    │ (store)  │    │ (repository) │
    └──────────┘    └──────────┘    └──────────────┘
                         │ fails          │ fails
                         ▼                ▼
               StorageUploadError   delete uploaded object once
               (no row written)     (best effort), MetadataWriteError

Delete flow (DELETE /api/notes/{id}):
    ownership check → delete row → delete object (best effort)

    The row goes first: a crash between the two steps leaves an orphaned
    object (invisible to users), never a row pointing at a missing file.

Ownership:
    A note owned by someone else is reported exactly like a missing note.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import BinaryIO, List, Optional, Tuple

from ricenotes.exceptions import (
    FileStorageError,
    MetadataWriteError,
    NotFoundError,
    ValidationError,
)
from ricenotes.models.note import PDF_CONTENT_TYPE, Note
from ricenotes.repositories.base import NoteRepository
from ricenotes.schemas.note import DownloadLinkResponse, NoteSummary
from ricenotes.services.storage_base import ObjectStore, build_storage_key

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_TITLE_LENGTH = 255
MAX_COURSE_ID_LENGTH = 50
MAX_FILE_NAME_LENGTH = 255
DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100
DEFAULT_LINK_TTL_SECONDS = 900
PDF_EXTENSION = ".pdf"


def clamp_pagination(limit: Optional[int], offset: Optional[int]) -> Tuple[int, int]:
    """
    Normalize client paging values.

    limit is kept when 0 < limit <= 100, otherwise 50.
    offset is kept when >= 0, otherwise 0.
    """
    if limit is None or limit <= 0 or limit > MAX_PAGE_LIMIT:
        limit = DEFAULT_PAGE_LIMIT
    if offset is None or offset < 0:
        offset = 0
    return limit, offset


def sanitize_file_name(file_name: str) -> str:
    """Strip any client-supplied directory components, for either separator."""
    name = PurePosixPath(file_name.replace("\\", "/")).name.strip()
    return "" if name in (".", "..") else name


class NoteService:
    """
    Business logic layer for note operations.

    Responsibilities:
        - create_note(): validation, upload, metadata insert, compensation
        - get_note(): owner-scoped lookup
        - list_notes(): owner-scoped, paginated, newest first
        - delete_note(): row then object
        - get_download_url(): presigned link for an owned note

    Error Handling Strategy:
        ValidationError is raised before any I/O. Store and repository errors
        propagate with their own types (StorageUploadError, MetadataWriteError,
        MetadataReadError). A failed compensation step is logged and never
        replaces the error that triggered it.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        repository: NoteRepository,
        max_file_size: int = MAX_FILE_SIZE,
        link_ttl_seconds: int = DEFAULT_LINK_TTL_SECONDS,
    ):
        self.object_store = object_store
        self.repository = repository
        self.max_file_size = max_file_size
        self.link_ttl_seconds = link_ttl_seconds

    def _validate_upload(
        self,
        owner_email: str,
        title: str,
        course_id: str,
        stream: Optional[BinaryIO],
        file_name: Optional[str],
        declared_size: Optional[int],
    ) -> Tuple[str, str, str]:
        if not owner_email:
            raise ValidationError("Authenticated user is required", field="owner")

        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                f"Title must be at most {MAX_TITLE_LENGTH} characters", field="title"
            )

        course_id = (course_id or "").strip()
        if not course_id:
            raise ValidationError("Course ID is required", field="course_id")
        if len(course_id) > MAX_COURSE_ID_LENGTH:
            raise ValidationError(
                f"Course ID must be at most {MAX_COURSE_ID_LENGTH} characters",
                field="course_id",
            )

        if stream is None or not file_name:
            raise ValidationError("A PDF file is required", field="file")

        if declared_size is None or declared_size <= 0:
            raise ValidationError("File is empty", field="file")
        if declared_size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                f"File too large. Maximum size is {max_mb:.0f}MB",
                field="file",
                context={"file_size": declared_size, "max_size": self.max_file_size},
            )

        clean_name = sanitize_file_name(file_name)
        if not clean_name or len(clean_name) > MAX_FILE_NAME_LENGTH:
            raise ValidationError("Invalid file name", field="file")
        if not clean_name.lower().endswith(PDF_EXTENSION):
            raise ValidationError("Only PDF files are allowed", field="file")

        return title, course_id, clean_name

    async def create_note(
        self,
        owner_email: str,
        title: str,
        course_id: str,
        stream: Optional[BinaryIO],
        file_name: Optional[str],
        declared_size: Optional[int],
    ) -> NoteSummary:
        """
        Validate, upload and record a new note.

        Args:
            owner_email: From the verified session, never from the request body
            stream: Binary file object, read exactly once by the object store
            declared_size: Byte size of the upload

        Returns:
            NoteSummary of the stored note

        Raises:
            ValidationError:    Invalid input (no I/O has happened)
            StorageUploadError: Upload failed (no row written)
            MetadataWriteError: Insert failed (uploaded object removed, best effort)
        """
        title, course_id, clean_name = self._validate_upload(
            owner_email, title, course_id, stream, file_name, declared_size
        )

        note_id = uuid.uuid4()
        storage_key = build_storage_key(owner_email, str(note_id), clean_name)

        await self.object_store.upload(storage_key, stream, PDF_CONTENT_TYPE, declared_size)

        note = Note(
            id=note_id,
            owner_email=owner_email,
            title=title,
            course_id=course_id,
            file_name=clean_name,
            storage_key=storage_key,
            file_size=declared_size,
            content_type=PDF_CONTENT_TYPE,
        )
        try:
            note = await self.repository.insert(note)
        except Exception as e:
            await self._discard_object(storage_key, reason="metadata insert failed")
            if isinstance(e, MetadataWriteError):
                raise
            logger.error("Unexpected error saving note %s: %s", note_id, str(e), exc_info=True)
            raise MetadataWriteError(
                context={"note_id": str(note_id), "error_type": type(e).__name__}
            ) from e

        logger.info(
            "Note %s created: course=%s size=%d",
            note.id,
            note.course_id,
            note.file_size,
        )
        return NoteSummary.model_validate(note)

    async def get_note(self, note_id: uuid.UUID, owner_email: str) -> Note:
        """
        Raises:
            NotFoundError: No such note, or it belongs to another user
        """
        note = await self.repository.get(note_id)
        if note is None or note.owner_email != owner_email:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    async def list_notes(
        self,
        owner_email: str,
        course_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Note]:
        limit, offset = clamp_pagination(limit, offset)
        return await self.repository.list_for_owner(
            owner_email,
            course_id=course_id or None,
            limit=limit,
            offset=offset,
        )

    async def delete_note(self, note_id: uuid.UUID, owner_email: str) -> None:
        """
        Remove a note's metadata, then its stored file.

        Of two concurrent deletes of the same note, exactly one succeeds and
        the other raises NotFoundError.
        """
        note = await self.get_note(note_id, owner_email)

        deleted = await self.repository.delete(note_id, owner_email)
        if not deleted:
            raise NotFoundError(resource="note", resource_id=str(note_id))

        await self._discard_object(note.storage_key, reason="note deleted")
        logger.info("Note %s deleted", note_id)

    async def get_download_url(self, note_id: uuid.UUID, owner_email: str) -> DownloadLinkResponse:
        note = await self.get_note(note_id, owner_email)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=self.link_ttl_seconds)
        url = await self.object_store.presigned_url(note.storage_key, self.link_ttl_seconds)
        return DownloadLinkResponse(url=url, expires_at=expires_at)

    async def _discard_object(self, storage_key: str, reason: str) -> None:
        """Single best-effort object delete; failures are logged, never raised."""
        try:
            await self.object_store.delete(storage_key)
        except FileStorageError as e:
            logger.warning(
                "Orphaned object left in store (%s): key=%s context=%s",
                reason,
                storage_key,
                e.context,
            )
        except Exception as e:
            logger.error(
                "Object cleanup failed unexpectedly (%s): key=%s %s",
                reason,
                storage_key,
                str(e),
                exc_info=True,
            )
