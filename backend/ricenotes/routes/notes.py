"""
Rice Notes Backend — Notes Route Handlers
===========================================

What:  Upload, list, fetch, download and delete PDF notes.
How:   Every handler requires a session principal; the owner email always
       comes from the verified token, never from the request.

Caching:
    All responses are per-user and may reveal titles, so nothing here is
    cacheable by shared caches (Cache-Control: private, no-store).
"""

import logging
import uuid
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from ricenotes.dependencies import (
    get_current_principal,
    get_note_service,
    note_id_path,
    pagination_params,
)
from ricenotes.schemas.note import (
    DownloadLinkResponse,
    ErrorResponse,
    NoteResponse,
    NoteSummary,
)
from ricenotes.services.note_service import NoteService
from ricenotes.services.token_service import SessionClaims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

PRIVATE_CACHE = "private, no-store"

AUTH_ERRORS = {401: {"description": "Missing or invalid session", "model": ErrorResponse}}
NOT_FOUND = {404: {"description": "Note not found", "model": ErrorResponse}}


def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    # Spooled temp file: measure by seeking, then rewind for the single read
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    return size


@router.post(
    "",
    status_code=201,
    response_model=NoteSummary,
    responses={
        400: {"description": "Invalid title, course or file", "model": ErrorResponse},
        **AUTH_ERRORS,
        500: {"description": "Storage or database failure", "model": ErrorResponse},
    },
    summary="Upload a PDF note",
)
async def create_note(
    response: Response,
    file: Optional[UploadFile] = File(default=None, description="PDF file, max 10MB"),
    title: str = Form(default=""),
    course_id: str = Form(default=""),
    principal: SessionClaims = Depends(get_current_principal),
    service: NoteService = Depends(get_note_service),
) -> NoteSummary:
    """
    Multipart fields: `file`, `title`, `course_id`.

    Missing fields are reported by NoteService as 400 validation errors, so
    every upload failure has the same error shape.
    """
    stream = file.file if file is not None else None
    file_name = file.filename if file is not None else None
    size = _upload_size(file) if file is not None else None

    summary = await service.create_note(
        owner_email=principal.email,
        title=title,
        course_id=course_id,
        stream=stream,
        file_name=file_name,
        declared_size=size,
    )
    response.headers["Location"] = f"/api/notes/{summary.id}"
    return summary


@router.get(
    "",
    response_model=List[NoteResponse],
    responses={**AUTH_ERRORS},
    summary="List your notes, newest first",
)
async def list_notes(
    response: Response,
    course_id: Optional[str] = Query(default=None, description="Exact course filter"),
    principal: SessionClaims = Depends(get_current_principal),
    paging: Tuple[Optional[int], Optional[int]] = Depends(pagination_params),
    service: NoteService = Depends(get_note_service),
) -> List[NoteResponse]:
    limit, offset = paging
    notes = await service.list_notes(
        principal.email,
        course_id=course_id,
        limit=limit,
        offset=offset,
    )
    response.headers["Cache-Control"] = PRIVATE_CACHE
    return [NoteResponse.model_validate(note) for note in notes]


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    responses={**AUTH_ERRORS, **NOT_FOUND},
    summary="Get one of your notes",
)
async def get_note(
    response: Response,
    principal: SessionClaims = Depends(get_current_principal),
    note_id: uuid.UUID = Depends(note_id_path),
    service: NoteService = Depends(get_note_service),
) -> NoteResponse:
    note = await service.get_note(note_id, principal.email)
    response.headers["Cache-Control"] = PRIVATE_CACHE
    return NoteResponse.model_validate(note)


@router.get(
    "/{note_id}/download",
    response_model=DownloadLinkResponse,
    responses={**AUTH_ERRORS, **NOT_FOUND},
    summary="Get a time-limited download link for a note's PDF",
)
async def download_note(
    response: Response,
    principal: SessionClaims = Depends(get_current_principal),
    note_id: uuid.UUID = Depends(note_id_path),
    service: NoteService = Depends(get_note_service),
) -> DownloadLinkResponse:
    link = await service.get_download_url(note_id, principal.email)
    response.headers["Cache-Control"] = PRIVATE_CACHE
    return link


@router.delete(
    "/{note_id}",
    status_code=204,
    responses={**AUTH_ERRORS, **NOT_FOUND},
    summary="Delete a note and its file",
)
async def delete_note(
    principal: SessionClaims = Depends(get_current_principal),
    note_id: uuid.UUID = Depends(note_id_path),
    service: NoteService = Depends(get_note_service),
) -> Response:
    await service.delete_note(note_id, principal.email)
    return Response(status_code=204)
