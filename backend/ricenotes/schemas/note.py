"""
Rice Notes Backend — Pydantic Request/Response Schemas
========================================================

What:  Pydantic models defining the API contract between frontend and backend.
How:   FastAPI serializes route return values through these models and builds
       the OpenAPI document from them.
Who:   Returned by NoteService and the route handlers.

Schemas are separate from the SQLAlchemy model so the API never exposes the
owner email or the storage key.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class NoteSummary(BaseModel):
    """
    What:  Returned by POST /api/notes (201) after a successful upload.
    """
    id: uuid.UUID = Field(description="Unique note identifier (UUID)")
    title: str = Field(description="User-supplied title")
    course_id: str = Field(description="Course code, e.g. MATH101")
    file_name: str = Field(description="Original file name")
    file_size: int = Field(description="File size in bytes")
    content_type: str = Field(description="Always application/pdf")
    # Read from Note.created_at; the frontend reads "uploaded_at"
    uploaded_at: datetime = Field(
        validation_alias=AliasChoices("created_at", "uploaded_at"),
        description="When the note was uploaded (UTC ISO 8601)",
    )

    model_config = {"from_attributes": True}


class NoteResponse(NoteSummary):
    """
    What:  Full note metadata.
    Who:   Items of GET /api/notes and the body of GET /api/notes/{id}.
    """
    updated_at: datetime = Field(description="Last modification time (UTC)")


class DownloadLinkResponse(BaseModel):
    """
    What:  Time-limited link to the stored PDF.
    Who:   Returned by GET /api/notes/{id}/download.
    """
    url: str = Field(description="Presigned GET URL")
    expires_at: datetime = Field(description="Instant after which the URL stops working")


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "validation_error",
            "message": "Only PDF files are allowed",
            "details": {"field": "file"},
            "request_id": "1f2e3d4c"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Metadata store: connected, disconnected, memory")
    storage: str = Field(description="Object store: available, unavailable, memory")
    uptime_seconds: float = Field(description="Seconds since service started")


class WelcomeResponse(BaseModel):
    message: str
    version: str
