"""
Rice Notes Backend — Upload Body Limit Middleware
===================================================

What:  Caps the request body of note uploads before FastAPI parses it.
How:   Pure ASGI middleware (it must wrap `receive`, which BaseHTTPMiddleware
       cannot do):
       1. Content-Length above the cap → 413 before a single byte is read
       2. Chunked or understated bodies → `receive` stops at the cap and the
          request is answered with the same 413

FastAPI reads multipart bodies before dependencies run, so without this
guard an anonymous client could make the server spool any amount of data to
disk before receiving its 401.

The cap is MAX_FILE_SIZE plus a fixed allowance for multipart framing and the
title/course_id fields; the exact file size check stays in NoteService.
"""

import logging
from typing import FrozenSet

from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ricenotes.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

MULTIPART_OVERHEAD = 64 * 1024
UPLOAD_PATHS = frozenset({"/api/notes"})


class _BodyTooLarge(Exception):
    pass


class UploadLimitMiddleware:
    """
    Args:
        max_body_size: Largest accepted request body in bytes
        paths: Paths whose POST bodies are capped
    """

    def __init__(
        self,
        app: ASGIApp,
        max_body_size: int,
        paths: FrozenSet[str] = UPLOAD_PATHS,
    ):
        self.app = app
        self.max_body_size = max_body_size
        self.paths = paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if (
            scope["type"] != "http"
            or scope["method"] != "POST"
            or scope["path"].rstrip("/") not in self.paths
        ):
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                await self._reject(scope, receive, send, 400, "validation_error", "Bad Content-Length")
                return
            if declared > self.max_body_size:
                logger.warning("Upload rejected by Content-Length: %d bytes", declared)
                await self._too_large(scope, receive, send)
                return

        received = 0
        overflowed = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, overflowed
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    overflowed = True
                    raise _BodyTooLarge()
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            # Whatever the app makes of the aborted body is replaced by the 413
            if overflowed:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except _BodyTooLarge:
            pass

        if overflowed and not response_started:
            logger.warning("Upload stream stopped after %d bytes", received)
            await self._too_large(scope, receive, send)

    async def _too_large(self, scope: Scope, receive: Receive, send: Send) -> None:
        max_mb = (self.max_body_size - MULTIPART_OVERHEAD) / (1024 * 1024)
        await self._reject(
            scope,
            receive,
            send,
            413,
            "payload_too_large",
            f"File too large. Maximum size is {max_mb:.0f}MB",
        )

    async def _reject(
        self, scope: Scope, receive: Receive, send: Send, status: int, error: str, message: str
    ) -> None:
        response = JSONResponse(
            status_code=status,
            content={"error": error, "message": message, "request_id": request_id_var.get("")},
            headers={"Connection": "close"},
        )
        await response(scope, receive, send)
