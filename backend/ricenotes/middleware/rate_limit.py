"""
Rice Notes Backend — Rate Limiting Middleware
===============================================

What:  Per-IP sliding window limit on API requests.
How:   Keeps a deque of request timestamps per client IP. Timestamps older
       than the window are dropped on each request; a full deque means 429
       with a Retry-After header.

State is per process. Behind several workers each one enforces its own
window, so the effective limit is limit × workers.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

EXCLUDED_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})
SWEEP_EVERY = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Args:
        max_requests: Requests allowed per client within `window_seconds`
        window_seconds: Sliding window length
        enabled: When False every request passes straight through
        clock: Monotonic time source (tests substitute a fake)
    """

    def __init__(
        self,
        app,
        max_requests: int = 300,
        window_seconds: int = 60,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.enabled = enabled
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._since_sweep = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.enabled or request.url.path in EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self._clock()
        window_start = now - self.window_seconds

        hits = self._hits[client_ip]
        while hits and hits[0] <= window_start:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = int(hits[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for %s: %d requests in %ds",
                client_ip,
                len(hits),
                self.window_seconds,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": f"Too many requests. Please wait {retry_after} seconds before retrying.",
                    "details": {"retry_after": retry_after},
                },
                headers={"Retry-After": str(retry_after)},
            )

        hits.append(now)

        self._since_sweep += 1
        if self._since_sweep >= SWEEP_EVERY:
            self._sweep(window_start)

        return await call_next(request)

    def _sweep(self, window_start: float) -> None:
        """Forget clients with no requests inside the current window."""
        self._since_sweep = 0
        idle = [ip for ip, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for ip in idle:
            del self._hits[ip]
        if idle:
            logger.debug("Dropped rate limit state for %d idle clients", len(idle))
