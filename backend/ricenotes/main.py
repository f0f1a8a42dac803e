"""
Rice Notes Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() builds every service once, stores them on app.state and
       wires middleware, exception handlers and routers.
Who:   uvicorn (uvicorn ricenotes.main:app); tests call create_app() with
       in-memory stores and a fake identity provider.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │                                                      │
    │  Middleware: RateLimit → RequestID → UploadLimit →   │
    │              Logging → CORS                          │
    │                                                      │
    │  Routes: /  /health  /api/auth/*  /api/notes/*       │
    │                                                      │
    │  app.state: settings, note_service, token_service    │
    │    note_service ─┬─ ObjectStore   (S3 | memory)      │
    │                  └─ NoteRepository (SQL | memory)    │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check (logged, not fatal), table creation
    Shutdown: close the OAuth HTTP client, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ricenotes import __version__
from ricenotes.config import Settings, get_settings
from ricenotes.database import (
    create_engine_from_settings,
    create_session_factory,
    create_tables,
    dispose_engine,
)
from ricenotes.exceptions import NotFoundError, RiceNotesError, ValidationError
from ricenotes.middleware.logging import RequestLoggingMiddleware
from ricenotes.middleware.rate_limit import RateLimitMiddleware
from ricenotes.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware, request_id_var
from ricenotes.middleware.upload_limit import MULTIPART_OVERHEAD, UploadLimitMiddleware
from ricenotes.repositories import InMemoryNoteRepository, NoteRepository, SqlNoteRepository
from ricenotes.routes import auth, health, notes
from ricenotes.services.memory_storage import InMemoryObjectStore
from ricenotes.services.note_service import NoteService
from ricenotes.services.s3_storage import S3ObjectStore
from ricenotes.services.storage_base import ObjectStore
from ricenotes.services.token_service import TokenService

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Authorization", "Content-Type"]


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once, writing to stdout.

    Format: 2024-01-15T12:00:00 [INFO] ricenotes.services.note_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "botocore", "boto3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("Rice Notes Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: /health and the note routes with existing tokens still work
        logger.error("Configuration error: %s", str(e))

    engine = app.state.engine
    if engine is not None and settings.db_create_tables:
        await create_tables(engine)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Rice Notes Backend shutting down...")
    provider = app.state.token_service.provider
    if hasattr(provider, "aclose"):
        await provider.aclose()
    if engine is not None:
        await dispose_engine(engine)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to the standard error body:
        {"error": code, "message": text, "request_id": id}

    ValidationError / RequestValidationError → 400 (with details.field)
    NotFoundError                            → 404
    RiceNotesError (any other)               → exc.status_code / exc.error_code
    Exception                                → 500 internal_server_error

    `context` is logged server-side and never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        details = {"field": exc.field} if exc.field else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = str(errors[0]["loc"][-1]) if errors and errors[0].get("loc") else None
        logger.warning("[%s] Malformed request: %s", request_id_var.get(""), field)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "validation_error",
                "Request is malformed",
                {"field": field} if field else None,
            ),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=_error_body(exc.error_code, exc.message),
        )

    @app.exception_handler(RiceNotesError)
    async def handle_app_error(request: Request, exc: RiceNotesError):
        rid = request_id_var.get("")
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            "[%s] %s: %s | Context: %s",
            rid,
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message),
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
            headers={REQUEST_ID_HEADER: rid} if rid else None,
        )


# ══════════════════════════════════════════════════════════════════════════
# Service Construction
# ══════════════════════════════════════════════════════════════════════════

def build_object_store(settings: Settings) -> ObjectStore:
    if settings.use_memory_storage:
        logger.warning("S3 not configured (or USE_MOCK_STORAGE=true); using in-memory object store")
        return InMemoryObjectStore()
    return S3ObjectStore.from_settings(settings)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    *,
    object_store: Optional[ObjectStore] = None,
    repository: Optional[NoteRepository] = None,
    token_service: Optional[TokenService] = None,
) -> FastAPI:
    """
    Assemble the application.

    Any of object_store, repository or token_service may be supplied to
    replace the implementation chosen from settings (tests use this).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Rice Notes API",
        description="Upload and manage PDF course notes with Rice University Google accounts.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    engine = None
    if repository is None:
        if settings.use_memory_database:
            logger.warning("DATABASE_URL not set; notes are kept in process memory")
            repository = InMemoryNoteRepository()
        else:
            engine = create_engine_from_settings(settings)
            repository = SqlNoteRepository(create_session_factory(engine))

    if object_store is None:
        object_store = build_object_store(settings)

    app.state.settings = settings
    app.state.engine = engine
    app.state.note_service = NoteService(
        object_store=object_store,
        repository=repository,
        max_file_size=settings.max_file_size,
        link_ttl_seconds=settings.download_url_ttl_seconds,
    )
    app.state.token_service = token_service or TokenService.from_settings(settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → UploadLimit → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        UploadLimitMiddleware,
        max_body_size=settings.max_file_size + MULTIPART_OVERHEAD,
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window,
        enabled=settings.rate_limit_enabled,
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(notes.router)

    return app


app = create_app()
