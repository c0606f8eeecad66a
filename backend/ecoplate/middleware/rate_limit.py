"""
EcoPlate Backend — Rate Limiting Middleware
============================================

Per-IP sliding window: each IP keeps the timestamps of its requests inside
the last `rate_limit_window` seconds; once `rate_limit_requests` are in the
window further requests get 429 with a Retry-After header.

State is in-process memory, so limits apply per worker.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ecoplate.config import settings
from ecoplate.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

# Sweep idle IPs after this many requests
CLEANUP_INTERVAL = 1000


class RateLimitMiddleware(BaseHTTPMiddleware):

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    def __init__(self, app, max_requests: Optional[int] = None, window_seconds: Optional[int] = None):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._seen = 0

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.time()
        window_start = now - self.window_seconds

        timestamps = self._requests[client_ip]
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()

        if len(timestamps) >= self.max_requests:
            retry_after = int(timestamps[0] + self.window_seconds - now) + 1
            logger.warning(
                "Rate limit exceeded for IP %s: %d requests in %ds window",
                client_ip,
                len(timestamps),
                self.window_seconds,
            )
            return self._reject(RateLimitExceededError(retry_after=retry_after))

        timestamps.append(now)

        self._seen += 1
        if self._seen % CLEANUP_INTERVAL == 0:
            self._cleanup_inactive_ips(window_start)

        return await call_next(request)

    @staticmethod
    def _reject(exc: RateLimitExceededError) -> JSONResponse:
        # Runs before RequestIDMiddleware, so there is no request id yet
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": exc.message,
                "details": {"retry_after": exc.retry_after},
                "request_id": None,
            },
            headers={"Retry-After": str(exc.retry_after)},
        )

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        inactive = [ip for ip, ts in self._requests.items() if not ts or ts[-1] <= window_start]
        for ip in inactive:
            del self._requests[ip]
        if inactive:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive))
