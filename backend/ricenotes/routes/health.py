"""
Rice Notes Backend — Health Check and Welcome Routes
======================================================

What:  GET / (welcome) and GET /health (dependency status for probes).

Status levels:
    - healthy:   metadata store and object store reachable (200)
    - degraded:  object store unreachable; reads of metadata still work (200)
    - unhealthy: metadata store unreachable (503)

In-memory stores report "memory" and always count as reachable.
"""

import logging
import time

from fastapi import APIRouter, Request, Response

from ricenotes import __version__
from ricenotes.repositories.memory import InMemoryNoteRepository
from ricenotes.schemas.note import HealthResponse, WelcomeResponse
from ricenotes.services.memory_storage import InMemoryObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", response_model=WelcomeResponse, summary="API welcome")
async def welcome() -> WelcomeResponse:
    return WelcomeResponse(message="Rice Notes API", version=__version__)


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Metadata store unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """
    Pings the metadata store (SELECT 1) and the object store (HeadBucket).

    Both checks are cheap enough to run on every probe.
    """
    service = request.app.state.note_service
    overall = "healthy"

    if isinstance(service.repository, InMemoryNoteRepository):
        db_status = "memory"
    elif await service.repository.ping():
        db_status = "connected"
    else:
        db_status = "disconnected"
        overall = "unhealthy"

    if isinstance(service.object_store, InMemoryObjectStore):
        storage_status = "memory"
    elif await service.object_store.health_check():
        storage_status = "available"
    else:
        storage_status = "unavailable"
        if overall == "healthy":
            overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503
        logger.warning("Health check: metadata store unreachable")

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
