"""
EcoPlate Backend — Request ID Middleware
=========================================

Assigns every request a correlation id. A client-supplied X-Request-ID is
reused; otherwise an 8-character id is generated. The id is echoed in the
X-Request-ID response header and appears in error bodies and access logs.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"
MAX_CLIENT_ID_LENGTH = 64


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER, "").strip()[:MAX_CLIENT_ID_LENGTH] or new_request_id()

        # Left set after the call: the catch-all 500 handler runs outside this middleware
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
