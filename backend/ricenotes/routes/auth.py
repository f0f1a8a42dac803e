"""
Rice Notes Backend — Authentication Route Handlers
====================================================

What:  Google sign-in for @rice.edu accounts and the session cookie.
How:   /google redirects to Google's consent page and binds the OAuth state
       to the browser with a short-lived cookie. /google/callback exchanges
       the code through TokenService, then sets the `jwt` cookie and
       redirects to the dashboard.

Callback failures:
    error param from Google   → 401 access_denied
    no code                   → 400 missing_code
    no state                  → 400 missing_state
    state ≠ oauth_state cookie → 400 invalid_state (checked when the cookie exists)
    CodeExchangeError         → 401 invalid_code
    DomainRejected            → 403 domain_rejected
    ProfileFetchError,
    SigningError              → 500 auth_error

    Browser navigations (Accept: text/html) get a 307 to FRONTEND_ERROR_URL
    instead of the JSON body.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from ricenotes.config import Settings
from ricenotes.dependencies import (
    SESSION_COOKIE,
    get_app_settings,
    get_current_principal,
    get_token_service,
)
from ricenotes.exceptions import OAuthError, SigningError
from ricenotes.middleware.request_id import request_id_var
from ricenotes.schemas.auth import UserResponse
from ricenotes.schemas.note import ErrorResponse
from ricenotes.services.token_service import SessionClaims, TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

STATE_COOKIE = "oauth_state"
STATE_COOKIE_MAX_AGE = 600


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def _callback_failure(
    request: Request,
    settings: Settings,
    status_code: int,
    error: str,
    message: str,
) -> Response:
    if _wants_html(request):
        response: Response = RedirectResponse(settings.frontend_error_url, status_code=307)
    else:
        response = JSONResponse(
            status_code=status_code,
            content={
                "error": error,
                "message": message,
                "request_id": request_id_var.get(""),
            },
        )
    response.delete_cookie(STATE_COOKIE, path="/api/auth")
    return response


@router.get(
    "/google",
    status_code=307,
    summary="Start Google sign-in",
    response_class=RedirectResponse,
)
async def google_login(
    state: Optional[str] = Query(default=None, description="Opaque state echoed back by Google"),
    token_service: TokenService = Depends(get_token_service),
) -> RedirectResponse:
    url, state = token_service.build_authorization_url(state or "")
    response = RedirectResponse(url, status_code=307)
    # Lax, not Strict: the cookie must ride along on the cross-site redirect back from Google
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        path="/api/auth",
        httponly=True,
        secure=True,
        samesite="lax",
    )
    logger.info("Redirecting to Google sign-in")
    return response


@router.get(
    "/google/callback",
    status_code=307,
    summary="Finish Google sign-in",
    response_class=RedirectResponse,
    responses={
        400: {"description": "Missing or mismatched code/state", "model": ErrorResponse},
        401: {"description": "Access denied or invalid code", "model": ErrorResponse},
        403: {"description": "Email outside the allowed domain", "model": ErrorResponse},
        500: {"description": "Provider or signing failure", "model": ErrorResponse},
    },
)
async def google_callback(
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    settings: Settings = Depends(get_app_settings),
    token_service: TokenService = Depends(get_token_service),
) -> Response:
    if error:
        logger.warning("User denied Google access: %s", error)
        return _callback_failure(request, settings, 401, "access_denied", "User denied access")
    if not code:
        return _callback_failure(
            request, settings, 400, "missing_code", "Authorization code is required"
        )
    if not state:
        return _callback_failure(
            request, settings, 400, "missing_state", "State parameter is required"
        )

    expected_state = request.cookies.get(STATE_COOKIE)
    if expected_state is not None and not hmac.compare_digest(expected_state, state):
        logger.warning("OAuth state mismatch on callback")
        return _callback_failure(
            request, settings, 400, "invalid_state", "State parameter does not match"
        )

    try:
        claims, token = await token_service.authenticate(code)
    except (OAuthError, SigningError) as e:
        logger.warning(
            "Sign-in failed: %s | Context: %s",
            type(e).__name__,
            {k: v for k, v in e.context.items() if k != "email"},
        )
        return _callback_failure(request, settings, e.status_code, e.error_code, e.message)

    response = RedirectResponse(settings.frontend_dashboard_url, status_code=307)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=int(token_service.ttl.total_seconds()),
        path="/",
        httponly=True,
        secure=True,
        samesite="strict",
    )
    response.delete_cookie(STATE_COOKIE, path="/api/auth")
    return response


@router.get(
    "/me",
    response_model=UserResponse,
    responses={401: {"description": "Missing or invalid session", "model": ErrorResponse}},
    summary="Current user",
)
async def me(principal: SessionClaims = Depends(get_current_principal)) -> UserResponse:
    return UserResponse(email=principal.email, name=principal.name, picture=principal.picture)


@router.post("/logout", status_code=204, summary="Clear the session cookie")
async def logout() -> Response:
    response = Response(status_code=204)
    response.delete_cookie(
        SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=True,
        samesite="strict",
    )
    return response
