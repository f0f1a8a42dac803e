"""
Rice Notes Backend — Request ID Middleware
============================================

What:  Attaches a correlation ID to every request and response.
How:   Reuses the client's X-Request-ID when it is short and printable,
       otherwise generates one. The ID lives in a ContextVar so loggers and
       exception handlers can read it without access to the request.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64

# Coroutine-local; each concurrent request sees its own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def _accept_client_id(value: str) -> bool:
    return 0 < len(value) <= MAX_CLIENT_ID_LENGTH and value.isprintable()


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        client_id = request.headers.get(REQUEST_ID_HEADER, "")
        rid = client_id if _accept_client_id(client_id) else uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid
        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
