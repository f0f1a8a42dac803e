"""
Rice Notes Backend — FastAPI Dependency Providers
===================================================

What:  Depends() providers that hand route handlers their services, the
       authenticated principal and normalized path/query values.
How:   Services are built once in create_app() and stored on app.state;
       providers read them from the request's app, so tests can build an app
       around in-memory fakes without touching module globals.
"""

import logging
import uuid
from typing import Optional, Tuple

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ricenotes.config import Settings
from ricenotes.exceptions import AuthenticationError, NotFoundError
from ricenotes.services.note_service import NoteService
from ricenotes.services.token_service import SessionClaims, TokenService

logger = logging.getLogger(__name__)

SESSION_COOKIE = "jwt"

bearer = HTTPBearer(auto_error=False, scheme_name="bearerAuth")


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_note_service(request: Request) -> NoteService:
    return request.app.state.note_service


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    token_service: TokenService = Depends(get_token_service),
) -> SessionClaims:
    """
    Resolve the caller from `Authorization: Bearer <jwt>`, falling back to the
    `jwt` cookie set by the OAuth callback.

    Raises:
        AuthenticationError: No token presented
        MalformedToken / SignatureInvalid / TokenExpired: Token rejected
    """
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        raise AuthenticationError(context={"path": request.url.path})
    return token_service.verify_token(token)


def note_id_path(note_id: str) -> uuid.UUID:
    """Path ids that are not UUIDs cannot name a note: report them as absent."""
    try:
        return uuid.UUID(note_id)
    except ValueError:
        raise NotFoundError(resource="note", resource_id=note_id)


def _lenient_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def pagination_params(
    limit: Optional[str] = Query(default=None, description="Page size, 1-100 (default 50)"),
    offset: Optional[str] = Query(default=None, description="Items to skip (default 0)"),
) -> Tuple[Optional[int], Optional[int]]:
    """
    Raw paging values; NoteService clamps them.

    Declared as strings so out-of-range or non-numeric values fall back to
    the defaults instead of failing request validation.
    """
    return _lenient_int(limit), _lenient_int(offset)
